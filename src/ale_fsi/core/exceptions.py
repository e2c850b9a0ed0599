class SolverDivergenceError(RuntimeError):
    """A linear solve diverged, hit a singular system or produced non-finite values.

    Also raised when the moving mesh becomes tangled, since no linear solve
    on that mesh can be trusted. Fatal for the run: there is no retry.
    """
