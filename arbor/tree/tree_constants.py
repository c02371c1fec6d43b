#!/usr/bin/env python3
"""
Constants and configuration for the conversation tree engine.
"""

# Schema and versioning
DEFAULT_SCHEMA_VERSION = "2"

# Id prefixes
TREE_ID_PREFIX = "tree"
NODE_ID_PREFIX = "node"

# File suffixes
BACKUP_FILE_SUFFIX = ".bak"
TEMP_FILE_SUFFIX = ".tmp"
DEFAULT_STORE_FILENAME = "arbor_trees.json"

# Node presentation
VALID_SHAPES = ("rectangle", "circle", "rounded", "diamond")
CONNECTION_TYPES = (
    "deepens",
    "explores",
    "contrasts",
    "examples",
    "applies",
    "questions",
    "extends",
    "summarizes",
)
MAX_TITLE_LENGTH = 500
DEFAULT_NODE_TITLE = "Untitled"

# Layout defaults (pixels)
PADDING_HORIZONTAL = 80
PADDING_TOP = 60
LEVEL_HEIGHT = 180
SIBLING_GAP = 100

# (width, height) by depth; the last entry is the floor for deeper nodes
NODE_SIZES_BY_DEPTH = (
    (200, 80),
    (180, 70),
    (160, 60),
    (140, 56),
)

# Connection routing
CURVE_TENSION = 0.4
LABEL_T = 0.4

# Canvas sizing
MIN_CANVAS_SIZE = 2000
CANVAS_MARGIN = 200

# Timing (seconds)
RENDER_DEBOUNCE_SECONDS = 0.3
PERSIST_FLUSH_DELAY_SECONDS = 0.05

# Error message templates
ERROR_MESSAGES = {
    "PARENT_NOT_FOUND": "Parent node {parent_id} does not exist",
    "NODE_NOT_FOUND": "Node {node_id} does not exist",
    "ROOT_DELETION": "Cannot delete root node. Delete the tree instead.",
    "ROOT_REPARENT": "The root node cannot be moved",
    "SELF_PARENT": "A node cannot become its own parent",
    "CYCLE_DETECTED": "Moving {node_id} under {new_parent_id} would create a cycle",
    "TREE_NOT_FOUND": "Tree {tree_id} does not exist",
    "EMPTY_TREE_NAME": "Tree name cannot be empty",
    "INVALID_SHAPE": "Invalid shape: {shape}",
    "INVALID_COLOR": "Invalid color: {color}",
}

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVEL_DEFAULT = "INFO"
