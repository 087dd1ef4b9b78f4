#!/usr/bin/env python3
import os
import re

from setuptools import setup

# The version is scraped from webhdfs/__init__.py: importing the package here would need
# requests and simplejson to be installed already.
with open(os.path.join(os.path.dirname(__file__), "webhdfs", "__init__.py")) as py:
    version_match = re.search(r'__version__ = "(.+?)"', py.read())
    assert version_match
    version = version_match.group(1)

setup(version=version)
