# =============================================================================
# utils/csv_utils.py - CSV utilities
# =============================================================================

import csv
from pathlib import Path
from typing import List, Dict, Any, Optional, Tuple
import logging

from core.exceptions import ExportPathInvalid


def ensure_parent_dir(output_path: str) -> Path:
    """Create the parent directory of output_path, raising ExportPathInvalid if it cannot be"""
    path = Path(output_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ExportPathInvalid(output_path, f"cannot create {path.parent} ({e})") from e
    return path


class CSVHandler:
    """Utilities for reading and writing CSV files"""

    @staticmethod
    def read_csv(file_path: str, encoding: str = 'utf-8-sig',
                 delimiter: str = ',') -> Tuple[List[Dict[str, Any]], List[str]]:
        """Read CSV file and return the rows as dictionaries plus the header"""
        logger = logging.getLogger(__name__)

        try:
            with open(file_path, 'r', newline='', encoding=encoding) as file:
                dict_reader = csv.DictReader(file, delimiter=delimiter)
                headers = [h.strip() for h in (dict_reader.fieldnames or [])]
                dict_reader.fieldnames = headers
                data = list(dict_reader)

            logger.info(f"CSV Headers: {headers}")
            logger.info(f"Successfully read {len(data)} records from {file_path}")
            return data, headers

        except FileNotFoundError:
            logger.error(f"Input file {file_path} not found")
            raise
        except Exception as e:
            logger.error(f"Error reading CSV: {e}")
            raise

    @staticmethod
    def write_csv(data: List[Dict[str, Any]], output_path: str,
                  fieldnames: Optional[List[str]] = None) -> None:
        """Write data to CSV file; the header row is written even when there is no data"""
        logger = logging.getLogger(__name__)

        if fieldnames is None:
            if not data:
                raise ValueError("fieldnames are required when there is no data to write")
            fieldnames = list(data[0].keys())

        path = ensure_parent_dir(output_path)
        try:
            with open(path, 'w', newline='', encoding='utf-8') as file:
                writer = csv.DictWriter(file, fieldnames=fieldnames, extrasaction='ignore')
                writer.writeheader()
                writer.writerows(data)
        except OSError as e:
            logger.error(f"Error writing CSV: {e}")
            raise ExportPathInvalid(output_path, str(e)) from e

        if not data:
            logger.warning(f"No data to write, header only written to {output_path}")
        else:
            logger.info(f"Successfully wrote {len(data)} records to {output_path}")
