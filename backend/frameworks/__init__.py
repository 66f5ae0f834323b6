"""Framework knowledge: registries, detection and command resolution."""

from frameworks.commands import (
    build_command,
    get_command,
    get_health_check_command,
    get_install_command,
    get_log_tail_command,
    get_process_kill_commands,
    get_uninstall_command,
)
from frameworks.detector import (
    DetectionResult,
    DetectionWeights,
    detect_framework,
    detect_package_manager,
    extract_package_from_import_error,
    get_log_file_paths,
    get_restart_command,
    is_process_running,
)
from frameworks.registry import (
    FrameworkProfile,
    PackageManagerProfile,
    get_framework,
    get_package_manager,
    list_frameworks,
    list_package_managers,
    parse_framework_id,
)

__all__ = [
    "DetectionResult",
    "DetectionWeights",
    "FrameworkProfile",
    "PackageManagerProfile",
    "build_command",
    "detect_framework",
    "detect_package_manager",
    "extract_package_from_import_error",
    "get_command",
    "get_framework",
    "get_health_check_command",
    "get_install_command",
    "get_log_file_paths",
    "get_log_tail_command",
    "get_package_manager",
    "get_process_kill_commands",
    "get_restart_command",
    "get_uninstall_command",
    "is_process_running",
    "list_frameworks",
    "list_package_managers",
    "parse_framework_id",
]
