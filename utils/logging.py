import sys


def log_message(message, verbose=False, always_print=False, is_error=False):
    """
    Print a formatted log message

    Args:
        message (str): The message to print
        verbose (bool): Whether to print detailed logs
        always_print (bool): Whether to print regardless of verbose setting
        is_error (bool): Whether to print to stderr instead of stdout
    """
    if not verbose and not always_print and not is_error:
        return

    stream = sys.stderr if is_error else sys.stdout
    print(f"{message}", file=stream)
