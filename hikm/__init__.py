# HIKM - Hierarchical Integer K-Means

# Import main components for direct API access
from hikm.core.tree import HIKMTree, HIKMNode
from hikm.builder.clustering import IKMeans
from hikm.builder.partition import copy_subset
from hikm.builder.builder import build_tree, build_node

__version__ = "1.0.0"
