from .command_executor import CommandRunner, format_command, run_shell_command
from .directives import FORMATS, LinkDirective, LinkKind, emit, link_kind, render
from .file_manager import _safe_join, _safe_extract_tar, download_and_extract, extract, prepare_source_tree, staging_path
