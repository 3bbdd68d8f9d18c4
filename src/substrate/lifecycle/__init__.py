"""Session lifecycle manager for sandboxed coding agents.

Why not a daemon with its own state store?
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Every piece of session state already lives in a registry owned by an
external tool.  Git owns branches and worktrees; docker and tmux own the
running container and the reattachable terminal.  A session is fully
described by its ``full_name``, and the workspace directory, branch and
tmux handle are all derived from it.  Commands here query those registries
live and never cache them.

The interesting part is teardown: a session can be half gone, for example
the container exited and someone deleted the worktree by hand, and ``clean``
must still converge.  Teardown is therefore an ordered list of named
best-effort steps whose outcomes are collected into a report instead of
aborting on the first error.
"""
