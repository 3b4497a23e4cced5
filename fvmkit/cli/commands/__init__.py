"""
CLI command implementations.

Each module exposes run(args) -> int (fork exposes one function per
sub-command).
"""
