"""Channel construction and flow-model generation for simulated NCCL-style collectives."""

__version__ = "0.1.0"