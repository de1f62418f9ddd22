from codec import keccak256


def get_function_selector(function_signature: str) -> bytes:
    """
    Calculates the function selector for a canonical signature such as "initialize()".

    The selector is the first four bytes of the Keccak-256 hash of the signature and
    tells the called contract which function the call data targets.

    Args:
        function_signature (str): The canonical signature, no spaces or argument names.

    Returns:
        bytes: The 4-byte selector.
    """
    return keccak256(function_signature.encode())[:4]
