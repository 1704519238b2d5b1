from clawback.engine.restic import ResticEngine


def create_engine(backend, repository, config=None):
    """Create a snapshot engine.

    backend: "local" (restic on PATH) or "docker" (restic image, needs docker on PATH)
    """
    if backend == "docker":
        from clawback.engine.docker import DockerResticEngine
        image = config.restic_image if config is not None else None
        return DockerResticEngine(repository, image=image) if image else DockerResticEngine(repository)

    if backend == "local":
        return ResticEngine(repository)

    raise ValueError(f"Unknown snapshot engine: {backend!r}. Use 'local' or 'docker'.")
