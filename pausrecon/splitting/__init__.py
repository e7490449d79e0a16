from .options import background, get_split_rules, split_rf_paus
