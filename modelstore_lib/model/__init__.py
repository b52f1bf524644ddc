"""Record descriptors, keys, codecs, options and the driver/adapter contracts."""
