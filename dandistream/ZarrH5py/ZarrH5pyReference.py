import h5py


class ZarrH5pyReference(h5py.h5r.Reference):
    """
    An object reference decoded from a {'_REFERENCE': {...}} attribute or
    array element. It is resolved by indexing the file with it.
    """
    def __init__(self, obj: dict):
        self._obj = obj
        self._object_id = obj["object_id"]
        self._path = obj["path"]
        self._source = obj["source"]
        self._source_object_id = obj["source_object_id"]

    @property
    def path(self) -> str:
        return self._path

    @property
    def object_id(self):
        return self._object_id

    def __repr__(self):
        return f"ZarrH5pyReference({self._object_id}, {self._path})"

    def __str__(self):
        return f"ZarrH5pyReference({self._object_id}, {self._path})"
