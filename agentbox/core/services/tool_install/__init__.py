"""
Tool orchestration service — package re-exports.

    from agentbox.core.services.tool_install import ToolManager

Each symbol lives in its single-responsibility module inside the
appropriate layer (data → detection → execution → orchestration).
"""

# ── L0: Data ──
from agentbox.core.services.tool_install.data.definitions import (  # noqa: F401
    TOOL_DEFINITIONS,
    ArchiveKind,
    BinarySource,
    ToolDefinition,
)

# ── L3: Detection ──
from agentbox.core.services.tool_install.detection.platform import (  # noqa: F401
    detect_platform,
    require_linux,
)

# ── L4: Execution ──
from agentbox.core.services.tool_install.execution.certs import ensure_cert  # noqa: F401
from agentbox.core.services.tool_install.execution.download import download  # noqa: F401
from agentbox.core.services.tool_install.execution.supervisor import (  # noqa: F401
    ProcessSupervisor,
    RunningProcess,
)
from agentbox.core.services.tool_install.execution.unpack import (  # noqa: F401
    unpack_gzip,
    unpack_zip_member,
)

# ── L5: Orchestration ──
from agentbox.core.services.tool_install.orchestration.lifecycle import (  # noqa: F401
    TimingPolicy,
    ToolController,
)
from agentbox.core.services.tool_install.orchestration.manager import (  # noqa: F401
    ToolManager,
    resolve_data_dir,
)
