"""core/ -- Kernel layer: configuration shared by auth/ and the CLI.

Layer rule: core/ may not import from auth/ or main.py.
"""
