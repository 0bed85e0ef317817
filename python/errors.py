class PiEstimationError(Exception):
    pass


class InvalidSampleCount(PiEstimationError, ValueError):
    def __init__(self, value, minimum):
        super().__init__(f"Sample count must be an integer >= {minimum}, got {value!r}")
        self.value = value
        self.minimum = minimum


class DegenerateAggregation(PiEstimationError, ArithmeticError):
    pass


class WorkerFailure(PiEstimationError, RuntimeError):
    def __init__(self, chunk, cause):
        super().__init__(f"Worker failed on samples [{chunk.start}, {chunk.end}): {cause!r}")
        self.chunk = chunk


class RunCancelled(PiEstimationError):
    pass
