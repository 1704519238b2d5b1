from clawback.destination.local import DirectoryDestination
from clawback.destination.volume import VolumeDestination


def create_destination(kind, location):
    if kind == "directory":
        return DirectoryDestination(location)
    if kind == "volume":
        return VolumeDestination(location)
    raise ValueError(f"Unknown destination kind: {kind!r}. Use 'directory' or 'volume'.")
