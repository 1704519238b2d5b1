import os
import shutil
from pathlib import Path

from clawback.destination.base import Destination


class DirectoryDestination(Destination):

    def __init__(self, path):
        self.root = Path(path)
        self.name = str(self.root)
        self.mount_source = str(self.root.resolve())
        self.local_path = self.root

    def exists(self):
        return self.root.is_dir() and os.access(self.root, os.W_OK)

    def entries(self):
        return sorted(entry.name for entry in self.root.iterdir())

    def make_dir(self, rel):
        self.remove(rel)
        (self.root / rel).mkdir(parents=True)

    def is_dir(self, rel):
        path = self.root / rel
        return path.is_dir() and not path.is_symlink()

    def move_children(self, src_rel, dst_rel, keep=()):
        src = self.root / src_rel if src_rel else self.root
        dst = self.root / dst_rel if dst_rel else self.root
        dst.mkdir(parents=True, exist_ok=True)
        for item in sorted(src.iterdir()):
            if item.name in keep:
                continue
            os.rename(item, dst / item.name)

    def clear(self, keep=()):
        for item in self.root.iterdir():
            if item.name in keep:
                continue
            _remove_path(item)

    def copy_into_root(self, rel):
        src = self.root / rel
        for item in sorted(src.iterdir()):
            dest = self.root / item.name
            if item.is_symlink():
                if dest.is_symlink() or dest.is_file():
                    dest.unlink()
                os.symlink(os.readlink(item), dest)
            elif item.is_dir():
                shutil.copytree(item, dest, symlinks=True, dirs_exist_ok=True)
            else:
                shutil.copy2(item, dest)
        shutil.copystat(src, self.root)

    def remove(self, rel):
        path = self.root / rel
        if path.exists() or path.is_symlink():
            _remove_path(path)


def _remove_path(path):
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
