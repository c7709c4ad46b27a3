"""
Utilities for turning image references into valid container names.
"""
import re

# Runs of characters outside [a-zA-Z0-9_.-], or a leading '.' or '-'
_INVALID_NAME_PATTERN = re.compile(r'^[.-]|[^a-zA-Z0-9_.-]+')


def sanitize_image_name(image: str) -> str:
    """
    Replaces characters that are not valid in a container name with '_'.

    Each run of invalid characters collapses to a single '_'. A leading '.' or
    '-' is replaced as well.

    :param image: The image reference, e.g. 'docker.io/library/nginx:1.23'.
    :return: A name fragment, e.g. 'docker.io_library_nginx_1.23'.
    """
    return _INVALID_NAME_PATTERN.sub('_', image)


def container_name(index: int, image: str) -> str:
    """
    Name of the index-th container of a scenario.
    """
    return f"test_{index}_{sanitize_image_name(image)}"
