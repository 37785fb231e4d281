from .errors import (
    MirrorError,
    ConfigError,
    DestinationError,
    ListingError,
)

from .config import (
    Source,
    Config,
    load_config,
    parse_config,
    effective_max_pack_size,
)

from .github import (
    Repo,
    list_repos,
    remote_url,
    transfer_url,
)

from .filters import should_skip

from .core import (
    RepoID,
    Git,
    mirror_path,
    mirror_exists,
    scan_packs,
    needs_repack,
    iter_mirrored_repos,
)

from .runner import (
    Outcome,
    Stat,
    process_repo,
    mirror_source,
    run,
)
