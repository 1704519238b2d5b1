from abc import ABC, abstractmethod


class Destination(ABC):
    """Base interface for restore destinations.

    Implementations: DirectoryDestination (a local directory), VolumeDestination
    (a Docker named volume, touched only through short-lived containers).

    All `rel` arguments are paths relative to the destination root.
    """

    # What a docker engine mounts to reach this destination (volume name or host path).
    mount_source = None
    # Path on this host, or None when the destination is only reachable via docker.
    local_path = None

    @abstractmethod
    def exists(self):
        """True if the destination exists and can be written."""
        pass

    @abstractmethod
    def entries(self):
        """Names of the direct children of the destination root."""
        pass

    @abstractmethod
    def make_dir(self, rel):
        """Create an empty directory, replacing anything already at rel."""
        pass

    @abstractmethod
    def is_dir(self, rel):
        pass

    @abstractmethod
    def move_children(self, src_rel, dst_rel, keep=()):
        """Rename every direct child of src_rel into dst_rel, skipping names in keep.

        An empty src_rel or dst_rel means the destination root.
        """
        pass

    @abstractmethod
    def clear(self, keep=()):
        """Remove every direct child of the root except names in keep."""
        pass

    @abstractmethod
    def copy_into_root(self, rel):
        """Copy the children of rel into the root, preserving modes and symlinks."""
        pass

    @abstractmethod
    def remove(self, rel):
        """Remove rel recursively. Missing paths are not an error."""
        pass

    def __str__(self):
        return self.name
