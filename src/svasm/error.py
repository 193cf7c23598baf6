class InvariantViolationError(AssertionError):
    """
    raised when a programming contract is broken, for example evidence is given to a call builder
    whose anchor locus it does not overlap
    """

    pass


class AssemblyBoundError(Exception):
    """
    raised when an assembly window grows past its configured size bound

    Attributes:
        reference_index (int): the reference sequence the window is on
        start (int): first position of the window
        end (int): last position of the window
    """

    def __init__(self, msg, reference_index=None, start=None, end=None):
        Exception.__init__(self, msg, reference_index, start, end)
        self.reference_index = reference_index
        self.start = start
        self.end = end


class MalformedEvidenceError(ValueError):
    """
    raised for evidence which cannot be used, ex. an empty sequence or a sequence shorter than the kmer size
    """

    pass
