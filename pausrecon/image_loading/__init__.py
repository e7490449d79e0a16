from .binfile import BinfileLoader, load_bin, to_bin, swap_endian_inplace
