from clawback.engine.restic import ResticEngine

IMAGE = "restic/restic:latest"
MOUNT_POINT = "/dst"


class DockerResticEngine(ResticEngine):
    """restic from its container image, for hosts that only have Docker.

    Credentials travel as `-e NAME` (value taken from the docker client's own
    environment), so they never appear in the process table.
    """

    def __init__(self, repository, image=IMAGE):
        super().__init__(repository, binary="docker")
        self.image = image

    def _target(self, destination, staging):
        return f"{MOUNT_POINT}/{staging}"

    def _restore_mounts(self, destination):
        return [f"{destination.mount_source}:{MOUNT_POINT}"]

    def _backup_mounts(self, sources):
        return [f"{s.host}:{s.path}:ro" for s in sources]

    def _command(self, args, mounts):
        cmd = ["docker", "run", "--rm"]
        for name in self.repository.env():
            cmd += ["-e", name]
        for mount in mounts:
            cmd += ["-v", mount]
        return cmd + [self.image, *args]
