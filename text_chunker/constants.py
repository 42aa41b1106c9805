#: Default maximum chunk size, in bytes.
CHUNK_SIZE_BYTES_DEFAULT = 4000
