import unittest

from solders.keypair import Keypair

from errors import FatalStartupError
from main import load_wallet


class LoadWalletTests(unittest.TestCase):
    def test_invalid_address_is_fatal(self) -> None:
        with self.assertRaises(FatalStartupError):
            load_wallet({"WALLET_ADDRESS": "not-a-wallet", "AUTO_BUY_ENABLED": False})

    def test_verification_only_needs_no_key(self) -> None:
        address = str(Keypair().pubkey())
        self.assertIsNone(load_wallet({"WALLET_ADDRESS": address, "AUTO_BUY_ENABLED": False}))

    def test_trading_loads_matching_keypair(self) -> None:
        keypair = Keypair()
        config = {"WALLET_ADDRESS": str(keypair.pubkey()), "AUTO_BUY_ENABLED": True,
                  "WALLET_PRIVATE_KEY": str(keypair)}
        self.assertEqual(load_wallet(config).pubkey(), keypair.pubkey())

    def test_mismatched_key_is_fatal(self) -> None:
        config = {"WALLET_ADDRESS": str(Keypair().pubkey()), "AUTO_BUY_ENABLED": True,
                  "WALLET_PRIVATE_KEY": str(Keypair())}
        with self.assertRaises(FatalStartupError):
            load_wallet(config)

    def test_missing_key_is_fatal(self) -> None:
        config = {"WALLET_ADDRESS": str(Keypair().pubkey()), "AUTO_BUY_ENABLED": True}
        with self.assertRaises(FatalStartupError):
            load_wallet(config)


if __name__ == "__main__":
    unittest.main()
