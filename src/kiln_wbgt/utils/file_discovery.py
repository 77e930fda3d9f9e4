"""
NetCDF file discovery for ISIMIP3b downloads.

Skips file system artifacts and hidden files, and optionally checks that
each file can be opened before it is stacked.
"""

from pathlib import Path
from typing import List, Optional, Tuple
import xarray as xr
from rich.console import Console

console = Console()


def is_valid_netcdf(file_path: Path) -> Tuple[bool, Optional[str]]:
    """
    Check whether a file is a readable NetCDF file with data variables.

    Returns:
        Tuple of (is_valid, error_message)
    """
    try:
        with xr.open_dataset(file_path) as ds:
            if not ds.data_vars:
                return False, "No data variables found"
        return True, None
    except Exception as e:
        error_msg = str(e)
        if "did not find a match in any of xarray" in error_msg:
            error_msg = "Not a valid NetCDF file"
        elif "No such file" in error_msg:
            error_msg = "File not found or inaccessible"
        return False, error_msg


def should_exclude_file(file_path: Path) -> Tuple[bool, Optional[str]]:
    """
    Check if a file should be excluded based on common patterns.

    Returns:
        Tuple of (should_exclude, reason)
    """
    filename = file_path.name

    if filename.startswith('._'):
        return True, "macOS resource fork file"

    if filename.startswith('.'):
        return True, "Hidden file"

    if filename.startswith('~') or filename.endswith('~'):
        return True, "Temporary file"

    if any(suffix in filename for suffix in ['.corrupted', '.backup', '.bak', '.tmp']):
        return True, "Backup or corrupted file marker"

    return False, None


def discover_netcdf_files(
    directory: Path,
    pattern: str = "*.nc",
    validate: bool = False,
    verbose: bool = True,
    fail_on_invalid: bool = True
) -> List[Path]:
    """
    Discover NetCDF files in a directory, sorted by name.

    ISIMIP file names carry their year range, so name order is time order.

    Args:
        directory: Directory to search for NetCDF files
        pattern: Glob pattern to match files
        validate: If True, check each file can be opened by xarray
        verbose: If True, print skipped files and a summary
        fail_on_invalid: If True, raise on unreadable files instead of skipping them

    Returns:
        List of NetCDF file paths

    Raises:
        FileNotFoundError: If the directory does not exist
        ValueError: If fail_on_invalid=True and invalid files are found
    """
    directory = Path(directory)
    if not directory.exists():
        raise FileNotFoundError(f"Directory not found: {directory}")

    if not directory.is_dir():
        raise ValueError(f"Path is not a directory: {directory}")

    all_files = sorted(directory.glob(pattern))

    valid_files = []
    excluded_files = []
    invalid_files = []

    for file_path in all_files:
        should_exclude, exclude_reason = should_exclude_file(file_path)
        if should_exclude:
            excluded_files.append((file_path, exclude_reason))
            if verbose:
                console.print(f"[yellow]Skipping {file_path.name}: {exclude_reason}[/yellow]")
            continue

        if validate:
            is_valid, error_msg = is_valid_netcdf(file_path)
            if not is_valid:
                invalid_files.append((file_path, error_msg))
                if verbose:
                    console.print(f"[red]Invalid {file_path.name}: {error_msg}[/red]")
                continue

        valid_files.append(file_path)

    if verbose:
        console.print(f"[dim]{directory}: {len(valid_files)} of {len(all_files)} {pattern} files usable[/dim]")

    if invalid_files and fail_on_invalid:
        error_msg = f"Found {len(invalid_files)} invalid NetCDF files:\n"
        for file_path, error in invalid_files[:5]:
            error_msg += f"  - {file_path.name}: {error}\n"
        if len(invalid_files) > 5:
            error_msg += f"  ... and {len(invalid_files) - 5} more"
        raise ValueError(error_msg)

    return valid_files
