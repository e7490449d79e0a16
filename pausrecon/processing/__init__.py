from .filters import firwin2, hamming_window, interp
from .recon import recon_one_scan, log_compress
from .saft import SaftDelayParams, TimeDelay, apply_saft, MAX_SAFT_LINES
