"""qcmd: ask for a shell command in plain words, review it, run it.

``q "find files over 100MB"`` sends the request to a model, picks the
command out of the answer, labels it Safe, Caution or Destructive and
runs it once you agree.  :mod:`qcmd.pipeline` drives those steps and
:mod:`qcmd.cli` is the ``click`` front end; each step has its own
module (providers, extractor, risk, gate, placeholders, executor).

During development ``python -m qcmd`` behaves like the installed ``q``.
"""

__version__ = "0.2.0"

__all__ = [
    "cli",
    "config",
    "executor",
    "extractor",
    "gate",
    "models",
    "pipeline",
    "placeholders",
    "providers",
    "risk",
]
