"""
Multicall3 Batcher
Batches many read-only contract calls into one aggregate3 eth_call.

Every call is submitted with allowFailure=true, so a reverting call (burned
token id, missing method) only fails its own slot. Results come back in
submission order as (success, value) pairs.
"""
import logging
from typing import Any, List, Sequence, Tuple

from eth_utils.abi import collapse_if_tuple
from hexbytes import HexBytes
from web3 import Web3

from config.contracts import MULTICALL3_ABI, MULTICALL3_ADDRESS

logger = logging.getLogger("Multicall")


class Multicall3:
    """
    Usage:
        mc = Multicall3(w3)
        owner_idx = mc.add_call(ve_contract, 'ownerOf', (token_id,))
        results = mc.execute()
        ok, owner = results[owner_idx]
    """

    def __init__(self, w3: Web3, address: str = MULTICALL3_ADDRESS):
        self.w3 = w3
        self.contract = w3.eth.contract(
            address=Web3.to_checksum_address(address),
            abi=MULTICALL3_ABI
        )
        self._calls: List[Tuple[str, HexBytes, List[str]]] = []

    def __len__(self) -> int:
        return len(self._calls)

    def add_call(self, contract, fn_name: str, args: Sequence[Any] = ()) -> int:
        """Queue one call; returns its index in the result list"""
        fn_abi = contract.get_function_by_name(fn_name).abi
        output_types = [collapse_if_tuple(output) for output in fn_abi["outputs"]]
        call_data = HexBytes(contract.encode_abi(fn_name, args=list(args)))
        self._calls.append((contract.address, call_data, output_types))
        return len(self._calls) - 1

    def execute(self, block_identifier: Any = "latest") -> List[Tuple[bool, Any]]:
        """
        Run every queued call in a single aggregate3 round-trip.

        Raises whatever the transport raises when the request itself fails.
        """
        if not self._calls:
            return []

        payload = [(target, True, call_data) for target, call_data, _ in self._calls]
        raw_results = self.contract.functions.aggregate3(payload).call(
            block_identifier=block_identifier
        )

        if len(raw_results) != len(self._calls):
            raise ValueError(
                f"aggregate3 returned {len(raw_results)} results for {len(self._calls)} calls"
            )

        return [
            self._decode(output_types, success, return_data)
            for (_, _, output_types), (success, return_data) in zip(self._calls, raw_results)
        ]

    def _decode(self, output_types: List[str], success: bool, return_data: bytes) -> Tuple[bool, Any]:
        if not success:
            return (False, None)
        try:
            decoded = self.w3.codec.decode(output_types, bytes(return_data))
        except Exception as e:
            # Non-contract targets answer success with empty return data
            logger.debug(f"Undecodable multicall slot ({output_types}): {e}")
            return (False, None)
        if len(decoded) == 1:
            return (True, decoded[0])
        return (True, tuple(decoded))
