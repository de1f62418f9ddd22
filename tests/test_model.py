"""
Test suite for authorization and set code transaction construction.
"""

from dataclasses import FrozenInstanceError
from unittest.mock import MagicMock

import pytest
from eth_account import Account

from codec import (decode_quantity, encode_quantity, keccak256, rlp_decode,
                   rlp_encode)
from conftest import DELEGATE, DEVNET6_CHAIN_ID, INITIALIZE_SELECTOR, PRIV_KEY
from errors import EncodingError, RangeError
from model import (SET_CODE_AUTH_MAGIC, SET_CODE_TX_TYPE, AccessTuple,
                   BaseTxParams, Parity, SetCodeAuthorization, SetCodeTx,
                   Signature, build_activation_tx)


def fixed_signer(parity: Parity, r: int = 1, s: int = 2):
    """A signing function that ignores the digest, to pin the signature fields."""
    return lambda digest: Signature(parity, r, s)


def decode_tx(raw: bytes) -> list:
    assert raw[:1] == SET_CODE_TX_TYPE
    return rlp_decode(raw[1:])


# ============================================================================
# Authorization
# ============================================================================

class TestSetCodeAuthorization:

    def test_signing_message_layout(self):
        msg = SetCodeAuthorization.signing_message(DEVNET6_CHAIN_ID, DELEGATE, 1)

        assert msg[:1] == SET_CODE_AUTH_MAGIC == b'\x05'
        assert rlp_decode(msg[1:]) == [encode_quantity(DEVNET6_CHAIN_ID), DELEGATE, b'\x01']

    def test_signing_hash_is_keccak_of_message(self):
        msg = SetCodeAuthorization.signing_message(1, DELEGATE, 0)
        assert SetCodeAuthorization.signing_hash(1, DELEGATE, 0) == keccak256(msg)

    def test_zero_nonce_and_any_chain_encode_empty(self):
        msg = SetCodeAuthorization.signing_message(0, DELEGATE, 0)
        assert rlp_decode(msg[1:]) == [b'', DELEGATE, b'']

    def test_build_is_deterministic(self, signer):
        first = SetCodeAuthorization.build(DEVNET6_CHAIN_ID, DELEGATE, 1, signer.sign_hash)
        second = SetCodeAuthorization.build(DEVNET6_CHAIN_ID, DELEGATE, 1, signer.sign_hash)

        assert first.encode() == second.encode()

    def test_build_signs_the_signing_hash(self, signer):
        signing_function = MagicMock(return_value=Signature(Parity.ODD, 5, 6))

        auth = SetCodeAuthorization.build(DEVNET6_CHAIN_ID, DELEGATE, 1, signing_function)

        signing_function.assert_called_once_with(SetCodeAuthorization.signing_hash(DEVNET6_CHAIN_ID, DELEGATE, 1))
        assert auth.signature == Signature(Parity.ODD, 5, 6)

    def test_recovers_authority(self, signer):
        auth = SetCodeAuthorization.build(DEVNET6_CHAIN_ID, DELEGATE, 1, signer.sign_hash)
        assert auth.recover_authority() == signer.address_bytes

    def test_encode_has_six_items(self, signer):
        auth = SetCodeAuthorization.build(DEVNET6_CHAIN_ID, '0x' + DELEGATE.hex(), 1, signer.sign_hash)
        encoded = auth.encode()

        assert len(encoded) == 6
        assert encoded[:3] == [encode_quantity(DEVNET6_CHAIN_ID), DELEGATE, b'\x01']
        assert encoded[3:] == auth.signature.encode()

    @pytest.mark.parametrize('parity,expected', [(Parity.EVEN, b''), (Parity.ODD, b'\x01')])
    def test_parity_encoding(self, parity, expected):
        auth = SetCodeAuthorization.build(1, DELEGATE, 1, fixed_signer(parity))
        assert auth.encode()[3] == expected

    def test_negative_nonce_is_rejected_before_signing(self):
        signing_function = MagicMock()

        with pytest.raises(RangeError):
            SetCodeAuthorization.build(1, DELEGATE, -1, signing_function)
        signing_function.assert_not_called()

    def test_short_address_is_rejected(self):
        with pytest.raises(RangeError):
            SetCodeAuthorization.build(1, DELEGATE[1:], 1, MagicMock())

    def test_is_frozen_after_build(self, signer):
        auth = SetCodeAuthorization.build(1, DELEGATE, 1, signer.sign_hash)

        with pytest.raises(FrozenInstanceError):
            auth.nonce = 7
        with pytest.raises(FrozenInstanceError):
            auth.addr = bytes(20)
        assert auth.nonce == 1
        assert auth.recover_authority() == signer.address_bytes

    def test_address_is_normalized(self):
        auth = SetCodeAuthorization(1, '0x' + DELEGATE.hex(), 1, Signature(Parity.EVEN, 1, 2))
        assert auth.addr == DELEGATE


# ============================================================================
# Set code transaction
# ============================================================================

class TestSetCodeTx:

    def make_tx(self, auths, acc_list=(), nonce=3):
        params = BaseTxParams(DEVNET6_CHAIN_ID, nonce=nonce, gas=100_000, gas_tip_cap=1, gas_fee_cap=2,
                              to=DELEGATE, data=INITIALIZE_SELECTOR)
        return SetCodeTx(params, acc_list, auths)

    def test_requires_an_authorization(self):
        with pytest.raises(EncodingError):
            self.make_tx([])

    def test_payload_field_order(self):
        auth = SetCodeAuthorization.build(DEVNET6_CHAIN_ID, DELEGATE, 4, fixed_signer(Parity.ODD))
        payload = self.make_tx([auth]).payload()

        assert payload == [encode_quantity(DEVNET6_CHAIN_ID), b'\x03', b'\x01', b'\x02',
                           encode_quantity(100_000), DELEGATE, b'', INITIALIZE_SELECTOR, [], [auth.encode()]]

    def test_hash_covers_type_byte(self):
        auth = SetCodeAuthorization.build(1, DELEGATE, 4, fixed_signer(Parity.ODD))
        tx = self.make_tx([auth])

        assert tx.hash() == keccak256(b'\x04' + rlp_encode(tx.payload()))
        assert tx.hash() != keccak256(rlp_encode(tx.payload()))

    def test_encode_with_sig_appends_signature(self):
        auth = SetCodeAuthorization.build(1, DELEGATE, 4, fixed_signer(Parity.ODD))
        tx = self.make_tx([auth])

        items = decode_tx(tx.encode_with_sig(Signature(Parity.EVEN, 0x0100, 7)))

        assert items[:10] == tx.payload()
        assert items[10:] == [b'', b'\x01\x00', b'\x07']

    def test_payload_is_snapshotted(self):
        auth = SetCodeAuthorization.build(1, DELEGATE, 4, fixed_signer(Parity.ODD))
        params = BaseTxParams(1, nonce=3, gas=21_000, gas_tip_cap=1, gas_fee_cap=2, to=DELEGATE)
        tx = SetCodeTx(params, [], [auth])
        before = tx.hash()

        params.nonce = 99

        assert tx.hash() == before

    def test_access_list_encoding(self):
        auth = SetCodeAuthorization.build(1, DELEGATE, 4, fixed_signer(Parity.ODD))
        key = (1).to_bytes(32, 'big')
        tx = self.make_tx([auth], acc_list=[AccessTuple('0x' + '00' * 19 + '01', [key])])

        assert tx.payload()[8] == [[bytes(19) + b'\x01', [key]]]

    def test_access_list_rejects_short_keys(self):
        auth = SetCodeAuthorization.build(1, DELEGATE, 4, fixed_signer(Parity.ODD))
        with pytest.raises(RangeError):
            self.make_tx([auth], acc_list=[AccessTuple(DELEGATE, [b'\x01'])])

    def test_data_must_be_bytes(self):
        auth = SetCodeAuthorization.build(1, DELEGATE, 4, fixed_signer(Parity.ODD))
        params = BaseTxParams(1, nonce=3, gas=21_000, gas_tip_cap=1, gas_fee_cap=2, to=DELEGATE,
                              data='0x8129fc1c')
        with pytest.raises(EncodingError):
            SetCodeTx(params, [], [auth])

    def test_multiple_authorizations_keep_order(self):
        auths = [SetCodeAuthorization.build(1, DELEGATE, n, fixed_signer(Parity.EVEN)) for n in (4, 5)]
        items = decode_tx(self.make_tx(auths).encode_with_sig(Signature(Parity.EVEN, 1, 1)))

        assert [decode_quantity(a[2]) for a in items[9]] == [4, 5]


# ============================================================================
# Activation
# ============================================================================

class TestBuildActivationTx:

    def test_devnet6_first_activation(self, activation_params, signer):
        signed = build_activation_tx(**activation_params)
        items = decode_tx(signed.raw)

        assert len(items) == 13
        assert items[0] == encode_quantity(DEVNET6_CHAIN_ID)
        assert items[1] == b''  # nonce 0
        assert items[5] == signer.address_bytes
        assert items[6] == b''  # value 0
        assert items[7] == INITIALIZE_SELECTOR
        assert items[8] == []
        assert len(items[9]) == 1
        auth = items[9][0]
        assert len(auth) == 6
        assert auth[:3] == [encode_quantity(DEVNET6_CHAIN_ID), DELEGATE, b'\x01']

    @pytest.mark.parametrize('account_nonce', [0, 1, 41, 255, 2 ** 32])
    def test_authorization_nonce_is_next_nonce(self, activation_params, account_nonce):
        activation_params['account_nonce'] = account_nonce
        signed = build_activation_tx(**activation_params)
        items = decode_tx(signed.raw)

        assert decode_quantity(items[1]) == account_nonce
        assert decode_quantity(items[9][0][2]) == account_nonce + 1
        assert signed.tx.set_code_auth_list[0].nonce == signed.tx.tx_params.nonce + 1

    def test_deterministic(self, activation_params):
        assert build_activation_tx(**activation_params).raw == build_activation_tx(**activation_params).raw

    def test_domain_separation(self, activation_params):
        signed = build_activation_tx(**activation_params)
        auth = signed.tx.set_code_auth_list[0]
        message = SetCodeAuthorization.signing_message(auth.chain_id, auth.addr, auth.nonce)

        assert message[:1] == b'\x05'
        assert signed.raw[:1] == b'\x04'
        assert signed.hex().startswith('0x04')
        assert keccak256(message) != signed.tx.hash()

    def test_both_signatures_recover_the_signer(self, activation_params, signer):
        signed = build_activation_tx(**activation_params)

        assert signed.sender() == signer.address_bytes
        assert signed.tx.set_code_auth_list[0].recover_authority() == signer.address_bytes
        assert signed.tx_hash == keccak256(signed.raw)

    @pytest.mark.parametrize('parity,expected', [(Parity.EVEN, b''), (Parity.ODD, b'\x01')])
    def test_parity_encoding_in_both_places(self, activation_params, parity, expected):
        activation_params['signing_function'] = fixed_signer(parity)
        items = decode_tx(build_activation_tx(**activation_params).raw)

        assert items[9][0][3] == expected
        assert items[10] == expected

    def test_negative_nonce_signs_nothing(self, activation_params):
        activation_params['account_nonce'] = -1
        activation_params['signing_function'] = MagicMock()

        with pytest.raises(RangeError):
            build_activation_tx(**activation_params)
        activation_params['signing_function'].assert_not_called()

    def test_negative_fee_is_range_error(self, activation_params):
        activation_params['gas_fee_cap'] = -1
        with pytest.raises(RangeError):
            build_activation_tx(**activation_params)

    def test_fee_wider_than_256_bits_is_range_error(self, activation_params):
        activation_params['gas_fee_cap'] = 2 ** 300
        with pytest.raises(RangeError):
            build_activation_tx(**activation_params)

    @pytest.mark.skipif(not hasattr(Account, 'sign_authorization'),
                        reason='eth-account without EIP-7702 support')
    def test_matches_eth_account(self, activation_params, signer):
        signed = build_activation_tx(**activation_params)
        auth = Account.sign_authorization(
            {'chainId': DEVNET6_CHAIN_ID, 'address': '0x' + DELEGATE.hex(), 'nonce': 1}, PRIV_KEY)
        reference = Account.sign_transaction({
            'chainId': DEVNET6_CHAIN_ID,
            'nonce': 0,
            'maxPriorityFeePerGas': activation_params['gas_tip_cap'],
            'maxFeePerGas': activation_params['gas_fee_cap'],
            'gas': activation_params['gas'],
            'to': signer.address,
            'value': 0,
            'data': '0x' + INITIALIZE_SELECTOR.hex(),
            'accessList': [],
            'authorizationList': [auth],
        }, PRIV_KEY)

        ours = signed.tx.set_code_auth_list[0].signature
        assert (int(ours.y_parity), ours.r, ours.s) == (auth.y_parity, auth.r, auth.s)
        assert bytes(reference.raw_transaction) == signed.raw
