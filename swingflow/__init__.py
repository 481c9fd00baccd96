"""
Baseball Swing Flow Analysis.

Turns a per-frame joint-coordinate sequence of a baseball swing into a
reproducible momentum-transfer assessment: ground/power/barrel flow
sub-scores, a composite score with a GOATY band, kinetic-chain timing and
leak diagnostics.

Modules are imported on-demand to avoid loading heavy dependencies.
"""

__version__ = "0.1.0"
