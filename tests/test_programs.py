"""
Paired insecure and secure handlers.

Each insecure handler is shown to accept the attack and each secure handler
to reject it with the expected tag, while still serving the legitimate
caller.
"""

import pytest

from ledger_gate.core.accounts import AccountInfo
from ledger_gate.core.config import U64_MAX
from ledger_gate.core.errors import ErrorTag
from ledger_gate.core.keys import Pubkey
from ledger_gate.engine.pda import derive
from ledger_gate.engine.records import RecordState, as_typed, state_of
from ledger_gate.programs import (
    ALL_PROGRAMS,
    AccountClosingProgram,
    BumpSeedProgram,
    IntegerOverflowProgram,
    OwnerChecksProgram,
    PdaSharingProgram,
    RawEntrypointProgram,
    ReinitializationProgram,
    SignerCheckProgram,
    TypeCosplayProgram,
)
from ledger_gate.programs import account_closing, bump_seed, integer_overflow
from ledger_gate.programs import owner_checks, pda_sharing, reinitialization
from ledger_gate.programs import signer_check, type_cosplay

from .helpers import make_info, meta, no_signers, noncanonical_bump, signed_by


def read(ledger, key, record):
    return record.unpack_unchecked(ledger.accounts[key].data)


def test_all_programs_have_distinct_ids():
    ids = {cls().program_id for cls in ALL_PROGRAMS}
    assert len(ids) == len(ALL_PROGRAMS)


def test_instruction_names_follow_opcodes():
    assert SignerCheckProgram().instruction_names() == [
        "initialize", "insecure_withdraw", "secure_withdraw"]


class TestSignerCheck:
    @pytest.fixture
    def setup(self, ledger, alice):
        program = ledger.register(SignerCheckProgram)
        pot, _ = derive([signer_check.POT_SEED, alice.pubkey], program.program_id)
        result = ledger.send(alice, [program.build_instruction(
            "initialize", [meta(pot, writable=True), meta(alice.pubkey, signer=True, writable=True)])])
        assert result.success
        ledger.fund(pot, 500)
        return program, pot

    def test_initialize(self, ledger, alice, setup):
        program, pot = setup
        assert ledger.accounts[pot].owner == program.program_id
        assert read(ledger, pot, signer_check.Pot) == {"owner": alice.pubkey}

    def test_insecure_withdraw_without_owner_signature(self, ledger, alice, mallory, setup):
        program, pot = setup
        result = ledger.send(mallory, [program.build_instruction(
            "insecure_withdraw", [meta(pot, writable=True), meta(alice.pubkey, writable=True)], 500)])
        assert result.success
        assert ledger.accounts.get_account_balance(pot) == 0

    def test_secure_withdraw_requires_signature(self, ledger, alice, mallory, setup):
        program, pot = setup
        result = ledger.send(mallory, [program.build_instruction(
            "secure_withdraw", [meta(pot, writable=True), meta(alice.pubkey, writable=True)], 500)])
        assert result.error_tag is ErrorTag.NOT_SIGNER
        assert ledger.accounts.get_account_balance(pot) == 500

    def test_secure_withdraw_by_owner(self, ledger, alice, setup):
        program, pot = setup
        result = ledger.send(alice, [program.build_instruction(
            "secure_withdraw",
            [meta(pot, writable=True), meta(alice.pubkey, signer=True, writable=True)], 200)])
        assert result.success
        assert ledger.accounts.get_account_balance(pot) == 300
        assert ledger.accounts.get_account_balance(alice.pubkey) == 200

    def test_withdraw_more_than_balance(self, ledger, alice, setup):
        program, pot = setup
        result = ledger.send(alice, [program.build_instruction(
            "secure_withdraw",
            [meta(pot, writable=True), meta(alice.pubkey, signer=True, writable=True)], 501)])
        assert result.error_tag is ErrorTag.INSUFFICIENT_FUNDS

    def test_insecure_withdraw_to_wrong_owner(self, ledger, mallory, setup):
        program, pot = setup
        result = ledger.send(mallory, [program.build_instruction(
            "insecure_withdraw",
            [meta(pot, writable=True), meta(mallory.pubkey, signer=True, writable=True)], 500)])
        assert result.error_tag is ErrorTag.AUTHORITY_MISMATCH


class TestPdaSharing:
    @pytest.fixture
    def setup(self, ledger, alice, mallory):
        program = ledger.register(PdaSharingProgram)
        pid = program.program_id
        alice_authority, _ = derive([pda_sharing.VAULT_SEED, alice.pubkey], pid)
        vault, alice_wallet, mallory_wallet = (Pubkey.new_unique() for _ in range(3))
        ledger.put(vault, pda_sharing.TokenVault.pack(authority=alice_authority, amount=100), pid)
        ledger.put(alice_wallet, pda_sharing.Wallet.pack(owner=alice.pubkey), pid)
        ledger.put(mallory_wallet, pda_sharing.Wallet.pack(owner=mallory.pubkey), pid)
        return program, vault, alice_authority, alice_wallet, mallory_wallet

    def test_insecure_withdraw_by_anyone(self, ledger, mallory, setup):
        program, vault, _, _, mallory_wallet = setup
        result = ledger.send(mallory, [program.build_instruction(
            "insecure_withdraw",
            [meta(vault, writable=True), meta(mallory.pubkey, signer=True),
             meta(mallory_wallet, writable=True)], 100)])
        assert result.success
        assert read(ledger, mallory_wallet, pda_sharing.Wallet)["amount"] == 100

    def test_secure_withdraw_with_victims_authority(self, ledger, mallory, setup):
        program, vault, alice_authority, _, mallory_wallet = setup
        result = ledger.send(mallory, [program.build_instruction(
            "secure_withdraw",
            [meta(vault, writable=True), meta(alice_authority), meta(mallory.pubkey, signer=True),
             meta(mallory_wallet, writable=True)], 100)])
        assert result.error_tag is ErrorTag.DERIVATION_MISMATCH
        assert read(ledger, vault, pda_sharing.TokenVault)["amount"] == 100

    def test_secure_withdraw_with_own_authority(self, ledger, mallory, setup):
        program, vault, _, _, mallory_wallet = setup
        own_authority, _ = derive([pda_sharing.VAULT_SEED, mallory.pubkey], program.program_id)
        result = ledger.send(mallory, [program.build_instruction(
            "secure_withdraw",
            [meta(vault, writable=True), meta(own_authority), meta(mallory.pubkey, signer=True),
             meta(mallory_wallet, writable=True)], 100)])
        assert result.error_tag is ErrorTag.AUTHORITY_MISMATCH

    def test_secure_withdraw_by_owner(self, ledger, alice, setup):
        program, vault, alice_authority, alice_wallet, _ = setup
        result = ledger.send(alice, [program.build_instruction(
            "secure_withdraw",
            [meta(vault, writable=True), meta(alice_authority), meta(alice.pubkey, signer=True),
             meta(alice_wallet, writable=True)], 40)])
        assert result.success
        assert read(ledger, vault, pda_sharing.TokenVault)["amount"] == 60
        assert read(ledger, alice_wallet, pda_sharing.Wallet)["amount"] == 40


class TestReinitialization:
    def test_insecure_init_overwrites_admin(self, ledger, alice, mallory):
        program = ledger.register(ReinitializationProgram)
        state = Pubkey.new_unique()
        ledger.put(state, reinitialization.State.pack(admin=alice.pubkey), program.program_id)
        result = ledger.send(mallory, [program.build_instruction(
            "insecure_init", [meta(state, writable=True), meta(mallory.pubkey, signer=True)])])
        assert result.success
        assert read(ledger, state, reinitialization.State)["admin"] == mallory.pubkey

    def test_secure_init_once(self, ledger, alice):
        program = ledger.register(ReinitializationProgram)
        state, _ = derive([reinitialization.STATE_SEED, alice.pubkey], program.program_id)
        ix = program.build_instruction(
            "secure_init", [meta(state, writable=True), meta(alice.pubkey, signer=True, writable=True)])
        assert ledger.send(alice, [ix]).success
        assert read(ledger, state, reinitialization.State)["admin"] == alice.pubkey

        result = ledger.send(alice, [ix])
        assert result.error_tag is ErrorTag.ALREADY_INITIALIZED

    def test_secure_init_of_victims_state(self, ledger, alice, mallory):
        program = ledger.register(ReinitializationProgram)
        state, _ = derive([reinitialization.STATE_SEED, alice.pubkey], program.program_id)
        result = ledger.send(mallory, [program.build_instruction(
            "secure_init",
            [meta(state, writable=True), meta(mallory.pubkey, signer=True, writable=True)])])
        assert result.error_tag is ErrorTag.DERIVATION_MISMATCH
        assert state not in ledger.accounts


class TestIntegerOverflow:
    @pytest.fixture
    def setup(self, ledger):
        program = ledger.register(IntegerOverflowProgram)
        tally = Pubkey.new_unique()
        ledger.put(tally, integer_overflow.Tally.pack(total=U64_MAX), program.program_id)
        return program, tally

    def test_insecure_add_wraps(self, ledger, alice, setup):
        program, tally = setup
        result = ledger.send(alice, [program.build_instruction(
            "insecure_add", [meta(tally, writable=True)], 2)])
        assert result.success
        assert read(ledger, tally, integer_overflow.Tally)["total"] == 1

    def test_secure_add_rejects_overflow(self, ledger, alice, setup):
        program, tally = setup
        result = ledger.send(alice, [program.build_instruction(
            "secure_add", [meta(tally, writable=True)], 2)])
        assert result.error_tag is ErrorTag.OVERFLOW
        assert read(ledger, tally, integer_overflow.Tally)["total"] == U64_MAX


class TestRawEntrypoint:
    @pytest.fixture
    def program(self):
        return RawEntrypointProgram()

    @pytest.mark.parametrize("name", ["hello", "raw_hello"])
    def test_signed(self, program, name):
        caller = make_info()
        outcome = program.process([caller], program.encode(name), signed_by(caller.key))
        assert outcome.success
        assert outcome.return_value == caller.key

    @pytest.mark.parametrize("name", ["hello", "raw_hello"])
    def test_flag_without_signature(self, program, name):
        caller = make_info(is_signer=True)
        outcome = program.process([caller], program.encode(name), no_signers())
        assert outcome.error_tag is ErrorTag.NOT_SIGNER

    @pytest.mark.parametrize("name", ["hello", "raw_hello"])
    def test_no_accounts(self, program, name):
        outcome = program.process([], program.encode(name), no_signers())
        assert outcome.error_tag is ErrorTag.NOT_ENOUGH_ACCOUNT_KEYS


class TestAccountClosing:
    @pytest.fixture
    def setup(self, ledger, alice):
        program = ledger.register(AccountClosingProgram)
        vault = Pubkey.new_unique()
        ledger.put(vault, account_closing.Vault.pack(owner=alice.pubkey, balance=9),
                   program.program_id, lamports=500)
        return program, vault

    def close_ix(self, program, vault, destination, name):
        return program.build_instruction(
            name, [meta(vault, writable=True), meta(destination, writable=True)])

    def test_insecure_close_leaves_live_record(self, ledger, alice, setup):
        program, vault = setup
        result = ledger.send(alice, [self.close_ix(program, vault, alice.pubkey, "insecure_close")])
        assert result.success
        assert ledger.accounts.get_account_balance(vault) == 0
        info = AccountInfo.from_account(vault, ledger.accounts[vault])
        assert state_of(info) is RecordState.INITIALIZED
        assert as_typed(info, account_closing.Vault, program.program_id).balance == 9

    def test_secure_close_tombstones(self, ledger, alice, setup):
        program, vault = setup
        result = ledger.send(alice, [self.close_ix(program, vault, alice.pubkey, "secure_close")])
        assert result.success
        assert ledger.accounts.get_account_balance(alice.pubkey) == 500
        data = ledger.accounts[vault].data
        assert data[:8] == b"\xff" * 8
        assert not any(data[8:])

        again = ledger.send(alice, [self.close_ix(program, vault, alice.pubkey, "secure_close")])
        assert again.error_tag is ErrorTag.TYPE_MISMATCH

    def test_close_and_revive_in_one_transaction(self, ledger, alice, setup):
        program, vault = setup
        result = ledger.send(alice, [
            self.close_ix(program, vault, alice.pubkey, "secure_close"),
            self.close_ix(program, vault, alice.pubkey, "insecure_close"),
        ])
        assert result.error_tag is ErrorTag.TYPE_MISMATCH
        assert result.failed_instruction == 1
        assert ledger.accounts.get_account_balance(vault) == 500


class TestBumpSeed:
    @pytest.fixture
    def program(self, ledger):
        return ledger.register(BumpSeedProgram)

    def seeds(self, keypair):
        return [bump_seed.VAULT_SEED, keypair.pubkey]

    def accounts(self, vault, keypair):
        return [meta(vault, writable=True), meta(keypair.pubkey, signer=True, writable=True)]

    def test_insecure_init_accepts_second_vault(self, ledger, alice, program):
        canonical, canonical_bump = derive(self.seeds(alice), program.program_id)
        other, other_bump = noncanonical_bump(self.seeds(alice), program.program_id)
        result = ledger.send(alice, [
            program.build_instruction("insecure_init", self.accounts(canonical, alice), canonical_bump),
            program.build_instruction("insecure_init", self.accounts(other, alice), other_bump),
        ])
        assert result.success
        assert read(ledger, other, bump_seed.Vault)["bump"] == other_bump

        check = ledger.send(alice, [program.build_instruction(
            "check_vault", [meta(other), meta(alice.pubkey, signer=True)])])
        assert check.error_tag is ErrorTag.DERIVATION_MISMATCH

    def test_secure_init_uses_canonical_bump(self, ledger, alice, program):
        canonical, canonical_bump = derive(self.seeds(alice), program.program_id)
        result = ledger.send(alice, [program.build_instruction(
            "secure_init", self.accounts(canonical, alice))])
        assert result.success
        assert read(ledger, canonical, bump_seed.Vault) == {
            "authority": alice.pubkey, "bump": canonical_bump}

        check = ledger.send(alice, [program.build_instruction(
            "check_vault", [meta(canonical), meta(alice.pubkey, signer=True)])])
        assert check.success
        assert check.outcomes[0].return_value == canonical_bump

    def test_secure_init_rejects_noncanonical_address(self, ledger, alice, program):
        other, _ = noncanonical_bump(self.seeds(alice), program.program_id)
        result = ledger.send(alice, [program.build_instruction(
            "secure_init", self.accounts(other, alice))])
        assert result.error_tag is ErrorTag.DERIVATION_MISMATCH
        assert other not in ledger.accounts

    def test_insecure_init_rejects_wrong_seeds(self, ledger, alice, mallory, program):
        address, bump = derive(self.seeds(mallory), program.program_id)
        result = ledger.send(alice, [program.build_instruction(
            "insecure_init", self.accounts(address, alice), bump)])
        assert result.error_tag is ErrorTag.DERIVATION_MISMATCH


class TestOwnerChecks:
    @pytest.fixture
    def program(self):
        return OwnerChecksProgram()

    def lookalike(self, authority, owner):
        data = owner_checks.Config.pack(authority=authority, data=1)
        return make_info(data=data, owner=owner, is_writable=True)

    def test_insecure_update_accepts_foreign_config(self, program, mallory):
        config = self.lookalike(mallory.pubkey, Pubkey.from_string_seed("program:attacker"))
        signer = make_info(key=mallory.pubkey)
        outcome = program.process([config, signer], program.encode("insecure_update", 99),
                                  signed_by(mallory.pubkey))
        assert outcome.success
        assert owner_checks.Config.unpack_unchecked(config.data)["data"] == 99

    def test_secure_update_rejects_foreign_config(self, program, mallory):
        config = self.lookalike(mallory.pubkey, Pubkey.from_string_seed("program:attacker"))
        signer = make_info(key=mallory.pubkey)
        outcome = program.process([config, signer], program.encode("secure_update", 99),
                                  signed_by(mallory.pubkey))
        assert outcome.error_tag is ErrorTag.OWNER_MISMATCH
        assert owner_checks.Config.unpack_unchecked(config.data)["data"] == 1

    def test_host_blocks_the_write_anyway(self, ledger, mallory):
        program = ledger.register(OwnerChecksProgram)
        config = Pubkey.new_unique()
        ledger.put(config, owner_checks.Config.pack(authority=mallory.pubkey, data=1),
                   Pubkey.from_string_seed("program:attacker"))
        result = ledger.send(mallory, [program.build_instruction(
            "insecure_update", [meta(config, writable=True), meta(mallory.pubkey, signer=True)], 99)])
        assert result.error_tag is ErrorTag.EXTERNAL_MODIFICATION

    def test_secure_update_by_authority(self, ledger, alice):
        program = ledger.register(OwnerChecksProgram)
        config = Pubkey.new_unique()
        ledger.put(config, owner_checks.Config.pack(authority=alice.pubkey, data=1),
                   program.program_id)
        result = ledger.send(alice, [program.build_instruction(
            "secure_update", [meta(config, writable=True), meta(alice.pubkey, signer=True)], 7)])
        assert result.success
        assert read(ledger, config, owner_checks.Config)["data"] == 7


class TestTypeCosplay:
    @pytest.fixture
    def setup(self, ledger, mallory):
        program = ledger.register(TypeCosplayProgram)
        admin = Pubkey.new_unique()
        ledger.put(admin, type_cosplay.AdminAccount.pack(authority=mallory.pubkey, balance=50),
                   program.program_id)
        return program, admin

    def withdraw(self, program, account, signer, name):
        return program.build_instruction(
            name, [meta(account, writable=True), meta(signer, signer=True)], 50)

    def test_insecure_withdraw_accepts_admin_account(self, ledger, mallory, setup):
        program, admin = setup
        result = ledger.send(mallory, [self.withdraw(program, admin, mallory.pubkey,
                                                     "insecure_withdraw")])
        assert result.success
        assert read(ledger, admin, type_cosplay.AdminAccount)["balance"] == 0

    def test_secure_withdraw_rejects_admin_account(self, ledger, mallory, setup):
        program, admin = setup
        result = ledger.send(mallory, [self.withdraw(program, admin, mallory.pubkey,
                                                     "secure_withdraw")])
        assert result.error_tag is ErrorTag.TYPE_MISMATCH
        assert read(ledger, admin, type_cosplay.AdminAccount)["balance"] == 50

    def test_secure_withdraw_from_user_account(self, ledger, alice):
        program = ledger.register(TypeCosplayProgram)
        user = Pubkey.new_unique()
        ledger.put(user, type_cosplay.UserAccount.pack(authority=alice.pubkey, balance=80),
                   program.program_id)
        result = ledger.send(alice, [self.withdraw(program, user, alice.pubkey, "secure_withdraw")])
        assert result.success
        assert read(ledger, user, type_cosplay.UserAccount)["balance"] == 30
