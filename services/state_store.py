import logging
from pathlib import Path
from typing import Dict, Optional, Union

from utils.utils import read_json_mapping, write_json_atomic


class LeaderStateStore:
    """
    Last known leader per tracked product, kept as a JSON object on disk.

    The file is rewritten whole on every change through a temp file and
    os.replace, so a crash leaves either the previous or the new mapping.
    A missing or corrupt file reads as an empty mapping.
    """

    def __init__(self, path: Union[str, Path]):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.path = Path(path)

    def load_all(self) -> Dict[str, str]:
        data = read_json_mapping(self.path)
        return {str(key): value for key, value in data.items() if isinstance(value, str)}

    def get_previous(self, product_id: str) -> Optional[str]:
        return self.load_all().get(product_id)

    def record_leader(self, product_id: str, leader_id: str) -> None:
        mapping = self.load_all()
        mapping[product_id] = leader_id
        write_json_atomic(self.path, mapping)
        self.logger.info(f"Recorded leader {leader_id} for {product_id}.")
