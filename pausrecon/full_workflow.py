import argparse
import logging
from typing import Tuple

import yaml
from tqdm import tqdm

from pausrecon.data_export.metrics import MetricsCSVExport
from pausrecon.data_objs import FrameCountKnown, FrameIdxChanged, FrameReady, IOParams, PlaybackFinished, \
        ReconParams2, StatusMessage
from pausrecon.engine import EngineConfig, EngineThread
from pausrecon.exceptions import ConfigError, ScanIOError
from pausrecon.visualizations.preview import plot_frame

DESCRIPTION = """
pausrecon | PA/US frame reconstruction from raw RF binfiles
"""

DEFAULTS = {
    'params': None,
    'ioparams': None,
    'play': False,
    'frame': 0,
    'saft': False,
    'float32': False,
    'no_images': False,
    'metrics_csv': None,
    'visualize': False,
    'engine': None,
}


def _setup_logging():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')


def workflow_args(parser: argparse.ArgumentParser):
    parser.add_argument('binfile', type=str, help='Path to the raw RF binfile')
    parser.add_argument('--params', type=str, default=None,
                        help='ReconParams2 JSON file (params.json). Defaults to the system2024v1 calibration.')
    parser.add_argument('--ioparams', type=str, default=None,
                        help='IOParams JSON file (ioparams.json). Defaults to the system2024v1 geometry.')
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--play', action='store_true', help='Reconstruct every frame of the binfile')
    group.add_argument('--frame', type=int, default=0, help='Reconstruct a single frame')
    parser.add_argument('--saft', action='store_true', help='Apply SAFT before envelope detection')
    parser.add_argument('--float32', action='store_true', help='Reconstruct in single precision')
    parser.add_argument('--no-images', dest='no_images', action='store_true',
                        help='Do not write US/PA/PAUS PNGs next to the binfile')
    parser.add_argument('--metrics-csv', dest='metrics_csv', type=str, default=None,
                        help='Export per-frame timings to this CSV file')
    parser.add_argument('--visualize', action='store_true',
                        help='Save a matplotlib preview of the last reconstructed frame')


def main_cli() -> int:
    _setup_logging()
    parser = argparse.ArgumentParser(description=DESCRIPTION)
    workflow_args(parser)
    args = parser.parse_args()
    args.engine = None

    return core_pipeline(args)


def main_yaml() -> int:
    _setup_logging()
    parser = argparse.ArgumentParser(description=DESCRIPTION)
    parser.add_argument('config', type=str, help='Path to config file')
    args = parser.parse_args()
    with open(args.config, 'r') as f:
        config = yaml.safe_load(f)
    return main_dict(config)


def main_dict(config: dict) -> int:
    """Runs the full reconstruction workflow from a config dictionary.

    Args:
        config (dict): Configuration dictionary. Must contain 'binfile'; every
            other CLI option is optional. An 'engine' mapping overrides
            `EngineConfig` fields.

    Returns:
        int: Exit code (0 for success, non-zero for failure).
    """
    if 'binfile' not in config:
        print("Config must contain 'binfile'")
        return 1
    args = argparse.Namespace(**{**DEFAULTS, **config})
    return core_pipeline(args)


def load_configs(args) -> Tuple[ReconParams2, IOParams, EngineConfig]:
    params = ReconParams2.deserialize_from_file(args.params) if args.params else ReconParams2.system2024v1()
    params.validate()
    ioparams = IOParams.deserialize_from_file(args.ioparams) if args.ioparams else IOParams.system2024v1()
    ioparams.sample_dtype()

    engine_kwargs = dict(args.engine or {})
    if args.float32:
        engine_kwargs['float_type'] = 'float32'
    if args.saft:
        engine_kwargs['saft_enabled'] = True
    if args.no_images:
        engine_kwargs['write_images'] = False
    return params, ioparams, EngineConfig.from_dict(engine_kwargs)


def core_pipeline(args) -> int:
    """Reconstructs frame 0, then either a single frame or the whole binfile."""
    try:
        params, ioparams, config = load_configs(args)
    except (ConfigError, ScanIOError) as e:
        print(f"Invalid configuration: {e}")
        return 1

    engine = EngineThread(config, params, ioparams)
    state = {'last': None, 'errors': 0, 'count': 0, 'metrics': []}

    def handle(event):
        if isinstance(event, FrameReady):
            state['last'] = event.data
            state['metrics'].append((event.data.frame_idx, event.data.metrics))
        elif isinstance(event, FrameCountKnown):
            state['count'] = event.count
        elif isinstance(event, StatusMessage) and event.is_error:
            state['errors'] += 1

    try:
        engine.set_binfile(args.binfile)
        engine.wait_idle()
        for event in engine.drain_events():
            handle(event)
        if not engine.is_ready():
            print(f"Failed to load {args.binfile}")
            return 1

        if args.play:
            engine.play()
            with tqdm(total=state['count'], desc='Frames') as pbar:
                while True:
                    event = engine.events.get()
                    handle(event)
                    if isinstance(event, FrameIdxChanged):
                        pbar.update(1)
                    elif isinstance(event, PlaybackFinished):
                        break
        elif args.frame:
            engine.play_one(args.frame)

        engine.wait_idle()
        engine.worker.flush_writes()
        for event in engine.drain_events():
            handle(event)
    finally:
        engine.stop()

    if args.metrics_csv:
        export = MetricsCSVExport(args.metrics_csv)
        for frame_idx, metrics in state['metrics']:
            export.add(frame_idx, metrics)
        export.save_data()

    if args.visualize and state['last'] is not None:
        dest = engine.get_image_save_dir() / f"preview_{state['last'].frame_idx:03d}.png"
        plot_frame(state['last'], dest_path=dest)
        logging.info("Saved preview to %s", dest)

    return 0 if state['errors'] == 0 else 1


if __name__ == '__main__':
    exit(main_yaml())
