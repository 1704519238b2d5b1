import shlex
import subprocess

from clawback.destination.base import Destination
from clawback.errors import EngineFailure

HELPER_IMAGE = "alpine:3.20"
MOUNT_POINT = "/dst"


def _path(rel):
    return shlex.quote(f"{MOUNT_POINT}/{rel}" if rel else MOUNT_POINT)


def _keep_args(keep):
    return "".join(f" ! -name {shlex.quote(name)}" for name in keep)


class VolumeDestination(Destination):
    """A Docker named volume, mounted at /dst in a throwaway alpine container per step."""

    def __init__(self, volume, image=HELPER_IMAGE):
        self.volume = volume
        self.name = volume
        self.mount_source = volume
        self.image = image

    def exists(self):
        result = subprocess.run(
            ["docker", "volume", "inspect", self.volume],
            capture_output=True,
            text=True,
        )
        return result.returncode == 0

    def entries(self):
        result = self._check("ls -A1 /dst", "list")
        return sorted(line for line in result.stdout.splitlines() if line)

    def make_dir(self, rel):
        self._check(f"rm -rf {_path(rel)} && mkdir -p {_path(rel)}", "create")

    def is_dir(self, rel):
        return self._sh(f"[ -d {_path(rel)} ] && [ ! -L {_path(rel)} ]").returncode == 0

    def move_children(self, src_rel, dst_rel, keep=()):
        src, dst = _path(src_rel), _path(dst_rel)
        # sh -c receives the target as $0 and the batch of children as $@
        self._check(
            f"mkdir -p {dst} && find {src} -mindepth 1 -maxdepth 1{_keep_args(keep)}"
            f" -exec sh -c 'mv \"$@\" \"$0\"' {dst} {{}} +",
            "move",
        )

    def clear(self, keep=()):
        self._check(
            f"find /dst -mindepth 1 -maxdepth 1{_keep_args(keep)} -exec rm -rf {{}} +",
            "clear",
        )

    def copy_into_root(self, rel):
        self._check(f"cp -a {shlex.quote(f'{MOUNT_POINT}/{rel}/.')} /dst/", "copy")

    def remove(self, rel):
        self._check(f"rm -rf {_path(rel)}", "remove")

    def _sh(self, script):
        return subprocess.run(
            ["docker", "run", "--rm", "-v", f"{self.volume}:{MOUNT_POINT}",
             self.image, "sh", "-c", f"set -e; {script}"],
            capture_output=True,
            text=True,
        )

    def _check(self, script, action):
        result = self._sh(script)
        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise EngineFailure(
                f"{action} failed in volume {self.volume}: {detail}",
                destination=self.name,
            )
        return result
