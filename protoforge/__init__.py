"""ProtoForge -- AI prototype builder.

Turns a free-text project idea into a scaffolded prototype directory by way
of a third-party AI provider. The pipeline lives in ``protoforge.pipeline``;
``protoforge.cli`` is the command-line entry point.
"""

__version__ = "1.0.0"
