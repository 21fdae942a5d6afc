"""Database export and import through the vendor dump/restore tools.

Both operations are synchronous: they wait for the whole pipeline and check
the exit status of every process in it. Commands are argument lists, never
shell strings; the credential travels in the tool environment.
"""

import logging
import os
import shutil
import subprocess
import tempfile
from datetime import datetime
from typing import Optional

from .drivers import NETWORKED
from .errors import BackupError, InvalidRequest, UnsupportedOperation

logger = logging.getLogger("dbwrap.backup")

COMPRESSOR = "gzip"
DECOMPRESSOR = "zcat"
EXPORT_DATE_FORMAT = "%Y-%m-%d_%H:%M:%S"
EXPORT_SUFFIX = ".sql.gz"


def require_external_tooling(connection, method: str) -> None:
    """Raise UnsupportedOperation unless `method` can run on this host."""
    driver = connection.driver
    if driver.kind != NETWORKED or not driver.required_tools:
        raise UnsupportedOperation(f"Driver not supported for {method}()")

    for tool in (COMPRESSOR, DECOMPRESSOR) + tuple(driver.required_tools):
        if shutil.which(tool) is None:
            raise UnsupportedOperation(f"{tool} must be installed to use {method}()")


def _run_pipeline(producer: list[str], consumer: list[str], env: dict, stdout=None) -> None:
    """Run `producer | consumer`, raising BackupError on a non-zero exit.

    The producer's stderr is spooled to a temporary file while the consumer
    is drained.
    """
    with tempfile.TemporaryFile() as producer_err:
        first = subprocess.Popen(producer, stdout=subprocess.PIPE, stderr=producer_err, env=env)
        try:
            second = subprocess.Popen(
                consumer, stdin=first.stdout, stdout=stdout, stderr=subprocess.PIPE, env=env
            )
        except OSError:
            first.kill()
            first.wait()
            raise
        # Only the consumer reads the pipe now
        first.stdout.close()

        _, second_err = second.communicate()
        first.wait()
        producer_err.seek(0)
        first_err = producer_err.read()

    for command, process, err in ((producer, first, first_err), (consumer, second, second_err)):
        if process.returncode != 0:
            stderr = (err or b"").decode(errors="replace").strip()
            raise BackupError(
                f"{command[0]} exited with status {process.returncode}: {stderr}", stderr
            )


def _export_path(destination: str, now: Optional[datetime] = None) -> str:
    """Timestamped archive path; a numeric suffix avoids overwriting."""
    stamp = (now or datetime.now()).strftime(EXPORT_DATE_FORMAT)
    base = os.path.join(destination, stamp)
    path = base + EXPORT_SUFFIX
    counter = 1
    while os.path.exists(path):
        path = f"{base}-{counter}{EXPORT_SUFFIX}"
        counter += 1
    return path


def export_database(connection, destination: str = ".") -> str:
    """Dump the connection's database into a gzip archive.

    Args:
        connection: Connection to a networked database.
        destination: Existing directory that receives the archive.

    Returns:
        Path of the written `<YYYY-MM-DD_HH:MM:SS>.sql.gz` file.
    """
    require_external_tooling(connection, "export")

    if not os.path.isdir(destination):
        raise InvalidRequest("Export destination must be a directory")

    driver = connection.driver
    descriptor = connection.descriptor
    database = connection.database_name()
    path = _export_path(destination.rstrip("/") or "/")

    dump = driver.dump_command(descriptor.params, database, descriptor.principal)
    env = driver.tool_env(descriptor.credential)

    logger.info("Exporting database %s to %s", database, path)
    try:
        with open(path, "wb") as out:
            _run_pipeline(dump, [COMPRESSOR, "-c"], env, stdout=out)
    except (BackupError, OSError):
        os.remove(path)
        logger.error("Export of %s failed, removed %s", database, path)
        raise

    logger.info("Exported database %s (%d bytes)", database, os.path.getsize(path))
    return path


def import_database(connection, source: str, backup: bool = True) -> bool:
    """Restore a gzip archive made by export_database().

    Args:
        connection: Connection to a networked database.
        source: Archive to restore.
        backup: Export the current state next to `source` first.

    Returns:
        True once the restore tool has finished successfully.
    """
    require_external_tooling(connection, "import")

    if not os.path.isfile(source):
        raise InvalidRequest("Import file does not exist")

    driver = connection.driver
    descriptor = connection.descriptor
    database = connection.database_name()

    if backup:
        saved = export_database(connection, os.path.dirname(os.path.abspath(source)))
        logger.info("Saved %s before import", saved)

    restore = driver.restore_command(descriptor.params, database, descriptor.principal)
    env = driver.tool_env(descriptor.credential)

    logger.info("Importing %s into database %s", source, database)
    _run_pipeline([DECOMPRESSOR, source], restore, env, stdout=subprocess.DEVNULL)
    logger.info("Imported %s into database %s", source, database)
    return True
