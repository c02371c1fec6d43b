#!/usr/bin/env python3
"""
Pytest configuration file.

Puts the project root on sys.path so the 'arbor' package imports without
an editable install.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))
