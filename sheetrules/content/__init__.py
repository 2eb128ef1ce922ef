from sheetrules.content import hybrid_d20

__all__ = ["hybrid_d20"]
