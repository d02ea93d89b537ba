"""Host adapters — converge resources on the local machine."""

from provisioner.adapters.host.archive import ArchiveAdapter
from provisioner.adapters.host.directory import DirectoryAdapter
from provisioner.adapters.host.exec import ExecAdapter
from provisioner.adapters.host.file import FileAdapter
from provisioner.adapters.host.systemd import SystemdAdapter
from provisioner.adapters.host.template import TemplateAdapter
from provisioner.adapters.host.zfs import ZfsAdapter

__all__ = [
    "ArchiveAdapter",
    "DirectoryAdapter",
    "ExecAdapter",
    "FileAdapter",
    "SystemdAdapter",
    "TemplateAdapter",
    "ZfsAdapter",
]
