class EquationError(Exception):
    """Base class for every failure raised while handling an equation."""


class LexError(EquationError):
    pass


class ReduceError(EquationError):
    """The token sequence does not collapse into a single group."""


class BuildError(EquationError):
    pass


class DifferentiationError(EquationError):
    pass


class EvaluationError(EquationError):
    pass
