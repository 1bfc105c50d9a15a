#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Cloudfoundry buildpack for Logstash applications
"""
__program__ = "logstash-buildpack"
__year__ = "2021"
__license__ = "MIT"
__purpose__ = """
Implements the buildpack interface (detect, supply, finalize, release).
Supply installs OpenJDK, Logstash, gte and jq (plus Ofelia and Curator when
curation is enabled in the Logstash file), reusing the application cache,
renders the Logstash configuration templates against the bound services and
installs certificates and plugins. Finalize writes the startup script.
"""

import sys
import os
import argparse
import logging

from . import __version__
from .finalize import Finalizer, START_COMMAND
from .manifest import Manifest
from .config import LogstashConfig
from .scripts import release_yaml
from .stager import Stager
from .supply import Supplier

BUILDPACK_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def detect(args, logger):
    if os.path.isfile(os.path.join(args.build_dir, LogstashConfig.Filename)):
        print("logstash %s" % __version__, flush=True)
        return 0
    logger.debug("No %s file in %s" % (LogstashConfig.Filename, args.build_dir))
    return 1


def supply(args, logger):
    stager = Stager(args.build_dir, args.cache_dir, args.deps_dir, args.deps_idx, logger)
    manifest = Manifest(args.buildpack_dir, os.environ.get("CF_STACK", ""), logger=logger)
    supplier = Supplier(stager, manifest, args.buildpack_dir, dict(os.environ), logger=logger)
    supplier.run()
    return 0


def finalize(args, logger):
    stager = Stager(args.build_dir, args.cache_dir, args.deps_dir, args.deps_idx, logger)
    Finalizer(stager, logger=logger).run()
    return 0


def release(args, logger):
    print(release_yaml(START_COMMAND), end="", flush=True)
    return 0


def parser():
    epilog = __purpose__ + '\n'
    epilog += __version__ + ', ' + __year__
    parser = argparse.ArgumentParser(prog=__program__, formatter_class=argparse.RawTextHelpFormatter, description=__doc__, epilog=epilog)
    parser.add_argument('-d', '--debug', action='store_true', default=False, help='Enable debug mode')
    parser.add_argument('--buildpack-dir', default=BUILDPACK_DIR, help='Buildpack root folder (with manifest.yml and defaults)')
    stages = parser.add_subparsers(dest='stage', required=True)
    p = stages.add_parser('detect', help='Detect a Logstash application')
    p.add_argument('build_dir', help='Application folder')
    p.set_defaults(func=detect)
    for name, func, text in [('supply', supply, 'Install dependencies and configuration'), ('finalize', finalize, 'Write the startup script')]:
        p = stages.add_parser(name, help=text)
        p.add_argument('build_dir', help='Application folder')
        p.add_argument('cache_dir', help='Application cache folder')
        p.add_argument('deps_dir', help='Dependencies folder')
        p.add_argument('deps_idx', help='Index of this buildpack in the dependencies folder')
        p.set_defaults(func=func)
    p = stages.add_parser('release', help='Print release information')
    p.add_argument('build_dir', help='Application folder')
    p.set_defaults(func=release)
    return parser


def main(argv=None):
    args = parser().parse_args(argv)
    logger = logging.getLogger()
    handler = logging.StreamHandler(sys.stdout)
    logger.addHandler(handler)
    if args.debug or os.environ.get("BP_DEBUG", ''):
        logger.setLevel(logging.DEBUG)
        handler.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)
        handler.setLevel(logging.INFO)
    try:
        return args.func(args, logger)
    except Exception as e:
        print("ERROR: %s" % str(e), file=sys.stderr, flush=True)
        return 1
    finally:
        sys.stdout.flush()
        sys.stderr.flush()
        logger.removeHandler(handler)


if __name__ == "__main__":
    sys.exit(main())
