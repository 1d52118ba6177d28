"""
Tests for the LedgerLens Engine.

Covers:
- Clean trial balance: totals balance, subtotals excluded, period found
- Inverted asset balances are flagged
- Synthetic rollups are never summed twice
- Income statement net result and sign normalization
- Documents with no usable line fail with NoAccountsIdentifiedError
- Determinism and serialization of the result
"""

import json

import pytest

from ledgerlens.exceptions import NoAccountsIdentifiedError
from ledgerlens.ledger_engine import (
    CashFlowCategory,
    DocumentType,
    EngineOptions,
    Nature,
    NormalizationResult,
    run_engine,
)
from ledgerlens.ledger_engine.orchestrator import filter_spell_check


TRIAL_BALANCE = [
    "EMPRESA EXEMPLO LTDA",
    "CNPJ: 12.345.678/0001-90",
    "Balancete de Verificação - Período: 01/01/2024 a 31/12/2024",
    "Código | Descrição | Saldo Anterior | Débito | Crédito | Saldo Atual",
    "1 | ATIVO | 0,00 | 15.000,00 | 5.000,00 | 10.000,00",
    "1.01 | Caixa | 0,00 | 10.000,00 | 4.000,00 | 6.000,00",
    "1.02 | Bancos | 0,00 | 5.000,00 | 1.000,00 | 4.000,00",
    "2 | PASSIVO | 0,00 | 1.000,00 | 11.000,00 | 10.000,00",
    "2.01 | Fornecedores | 0,00 | 1.000,00 | 11.000,00 | 10.000,00",
    "Página 1",
]

INCOME_STATEMENT = [
    "DEMONSTRAÇÃO DO RESULTADO DO EXERCÍCIO",
    "Exercício findo em 31/12/2024",
    "Receita de Vendas 10.000,00",
    "(-) Deduções da Receita (1.000,00)",
    "Despesas Administrativas (4.000,00)",
    "Despesas Financeiras (500,00)",
]


def _by_code(result: NormalizationResult):
    return {a.code: a for a in result.accounts}


def _by_name(result: NormalizationResult):
    return {a.name: a for a in result.accounts}


# =============================================================================
# Trial Balance Tests
# =============================================================================

class TestTrialBalance:
    """Coded trial balances with movement columns."""

    def test_two_line_trial_balance(self):
        result = run_engine(
            ["1.01 | Caixa | 1.000,00", "2.01 | Fornecedores | 1.000,00"], "Balancete"
        )
        summary = result.summary

        assert [a.is_synthetic for a in result.accounts] == [False, False]
        assert summary.total_debits == 1000.0
        assert summary.total_credits == 1000.0
        assert summary.is_balanced is True
        assert summary.discrepancy_amount == 0.0

    def test_synthetic_codes_prefix_another_account(self):
        result = run_engine(TRIAL_BALANCE)
        codes = [a.code for a in result.accounts]

        for account in result.accounts:
            if account.is_synthetic:
                assert any(
                    other != account.code and other.startswith(account.code + ".")
                    for other in codes
                )

    def test_clean_trial_balance(self):
        result = run_engine(TRIAL_BALANCE)
        summary = result.summary

        assert summary.document_type == DocumentType.TRIAL_BALANCE
        assert summary.total_debits == 16000.0
        assert summary.total_credits == 16000.0
        assert summary.is_balanced is True
        assert summary.discrepancy_amount == 0.0
        assert summary.period == "01/01/2024 a 31/12/2024"
        assert summary.inversion_count == 0

    def test_header_and_footer_lines_skipped(self):
        result = run_engine(TRIAL_BALANCE)

        assert len(result.accounts) == 5
        assert result.skipped_lines == 5

    def test_subtotals_are_synthetic(self):
        accounts = _by_code(run_engine(TRIAL_BALANCE))

        assert accounts["1"].is_synthetic is True
        assert accounts["2"].is_synthetic is True
        assert accounts["1.01"].is_synthetic is False
        assert accounts["2.01"].is_synthetic is False

    def test_columns_mapped(self):
        caixa = _by_code(run_engine(TRIAL_BALANCE))["1.01"]

        assert caixa.initial_balance == 0.0
        assert caixa.debit == 10000.0
        assert caixa.credit == 4000.0
        assert caixa.final_balance == 6000.0
        assert caixa.total_value == 6000.0
        assert caixa.nature == Nature.DEBIT

    def test_level_matches_code_segments(self):
        result = run_engine([
            "1 | Ativo | 100,00",
            "1.01 | Circulante | 100,00",
            "1.01.001 | Caixa Geral | 100,00",
        ], "Balancete")

        assert [a.level for a in result.accounts] == [1, 2, 3]

    def test_natural_code_order(self):
        result = run_engine([
            "1.10 | Estoques | 100,00",
            "1.2 | Clientes | 100,00",
            "2.01 | Fornecedores | 200,00",
        ], "Balancete")

        assert [a.code for a in result.accounts] == ["1.2", "1.10", "2.01"]

    def test_balance_tolerance(self):
        lines = ["1.01 | Caixa | 1.000,00", "2.01 | Fornecedores | 999,50"]

        assert run_engine(lines, "Balancete").summary.is_balanced is True
        strict = run_engine(lines, "Balancete", options=EngineOptions(balance_tolerance=0.1))
        assert strict.summary.is_balanced is False
        assert strict.summary.discrepancy_amount == 0.5

    def test_duplicate_codes_keep_first(self):
        result = run_engine([
            "1.01 | Caixa | 100,00",
            "1.01 | Caixa Repetido | 900,00",
            "2.01 | Fornecedores | 100,00",
        ], "Balancete")

        assert [a.name for a in result.accounts] == ["Caixa", "Fornecedores"]
        assert result.summary.is_balanced is True
        assert "Código duplicado ignorado: 1.01 - Caixa Repetido (linha 2)" in result.summary.observations

    def test_suspicious_amount_reported(self):
        result = run_engine([
            "1.01 | Caixa | 1.2.3 | 100,00",
            "2.01 | Fornecedores | 100,00",
        ], "Balancete")

        assert len(result.warnings) == 1
        assert result.warnings[0].line_number == 1
        assert (
            "Linha 1: valor suspeito '1.2.3' (Unparseable amount read as 0)"
            in result.summary.observations
        )

    def test_degraded_hierarchy_fallback(self):
        lines = [
            f"{'.'.join(['1'] * depth)} | Nivel {depth} | 100,00"
            for depth in range(1, 7)
        ]
        options = EngineOptions(flat_fallback_ratio=0.5)

        result = run_engine(lines, "Balancete", options=options)

        assert result.summary.hierarchy_degraded is True
        assert result.summary.total_debits == 600.0


# =============================================================================
# Sign and Inversion Tests
# =============================================================================

class TestInversions:
    """Balances on the wrong side of their nature."""

    def test_inverted_asset_flagged(self):
        result = run_engine([
            "1.01 | Caixa | (500,00)",
            "2.01 | Fornecedores | 500,00",
        ], "Balancete")
        accounts = _by_code(result)

        assert accounts["1.01"].possible_inversion is True
        assert accounts["2.01"].possible_inversion is False
        assert result.inverted_accounts() == [accounts["1.01"]]
        assert "Possível inversão de natureza: 1.01 - Caixa" in result.summary.observations

    def test_inverted_balance_moves_to_credit(self):
        caixa = _by_code(run_engine(["1.01 | Caixa | (500,00)"], "Balancete"))["1.01"]

        assert caixa.debit == 0.0
        assert caixa.credit == 500.0
        assert caixa.final_balance == -500.0
        assert caixa.total_value == 500.0

    def test_contra_account_printed_positive(self):
        result = run_engine([
            "1.2.01 | Imobilizado | 10.000,00",
            "1.2.02 | (-) Depreciação Acumulada | 2.000,00",
            "2.01 | Fornecedores | 8.000,00",
        ], "Balanço Patrimonial")
        depreciation = _by_code(result)["1.2.02"]

        assert depreciation.possible_inversion is False
        assert depreciation.debit == 0.0
        assert depreciation.credit == 2000.0
        assert result.summary.total_debits == 10000.0
        assert result.summary.total_credits == 10000.0
        assert result.summary.is_balanced is True

    def test_contra_account_in_parentheses(self):
        result = run_engine([
            "1.2.01 | Imobilizado | 10.000,00",
            "1.2.02 | (-) Depreciação Acumulada | (2.000,00)",
            "2.01 | Fornecedores | 8.000,00",
        ], "Balanço Patrimonial")

        assert _by_code(result)["1.2.02"].credit == 2000.0
        assert result.summary.inversion_count == 0
        assert result.summary.is_balanced is True

    def test_marker_sets_side(self):
        result = run_engine([
            "1.01 | Caixa | 500,00 D",
            "2.01 | Fornecedores | 500,00 C",
        ], "Balancete")
        accounts = _by_code(result)

        assert accounts["2.01"].credit == 500.0
        assert accounts["2.01"].nature_indicator == "C"
        assert result.summary.is_balanced is True
        assert result.summary.inversion_count == 0

    def test_signed_convention(self):
        """Credits printed negative are not inversions."""
        result = run_engine([
            "1.01 | Caixa | 1.000,00",
            "2.01 | Fornecedores | -600,00",
            "2.02 | Salários a Pagar | -400,00",
        ], "Balancete")

        assert result.summary.inversion_count == 0
        assert result.summary.is_balanced is True
        assert _by_code(result)["2.02"].credit == 400.0

    def test_synthetic_rollup_not_double_counted(self):
        result = run_engine([
            "1 | Ativo | 1.000,00",
            "1.01 | Caixa | 600,00",
            "1.02 | Bancos | 400,00",
            "2 | Passivo | 1.000,00",
            "2.01 | Fornecedores | 1.000,00",
        ], "Balanço Patrimonial")
        summary = result.summary

        assert summary.total_debits == 1000.0
        assert summary.total_credits == 1000.0
        assert summary.is_balanced is True
        assert summary.synthetic_count == 2
        assert summary.analytical_count == 3


# =============================================================================
# Income Statement Tests
# =============================================================================

class TestIncomeStatement:
    """DRE result, signs and categories."""

    def test_net_result(self):
        summary = run_engine(INCOME_STATEMENT, "DRE").summary

        assert summary.document_type == DocumentType.INCOME_STATEMENT
        assert summary.result_value == 4500.0
        assert summary.result_label == "LUCRO / SUPERÁVIT"
        assert summary.is_balanced is True
        assert summary.period == "01/01/2024 a 31/12/2024"

    def test_simple_profit(self):
        summary = run_engine([
            "Receita de Vendas 10.000,00",
            "Despesas Administrativas (4.000,00)",
        ], "DRE").summary

        assert summary.result_value == 6000.0
        assert summary.result_label == "LUCRO / SUPERÁVIT"

    def test_profit_subtotals_positive(self):
        result = run_engine([
            "Receita Bruta de Vendas 10.000,00",
            "(-) Custo das Mercadorias Vendidas (4.000,00)",
            "Lucro Bruto 6.000,00",
            "Despesas Administrativas (1.000,00)",
            "Lucro Líquido do Exercício 5.000,00",
        ], "DRE")
        accounts = _by_name(result)

        assert accounts["Lucro Bruto"].final_balance == 6000.0
        assert accounts["Lucro Bruto"].credit == 6000.0
        assert accounts["Lucro Líquido do Exercício"].final_balance == 5000.0
        assert result.summary.inversion_count == 0
        assert result.summary.result_value == 5000.0

    def test_loss(self):
        summary = run_engine([
            "Receita de Vendas 1.000,00",
            "Custo das Vendas (3.000,00)",
        ], "DRE").summary

        assert summary.result_value == -2000.0
        assert summary.result_label == "PREJUÍZO / DÉFICIT"

    def test_sign_normalization(self):
        """Expense lines end negative and revenue lines positive whatever their print."""
        result = run_engine([
            "Receita de Vendas 10.000,00",
            "Despesas Administrativas 4.000,00",
        ], "DRE")
        accounts = _by_name(result)

        assert accounts["Receita de Vendas"].final_balance == 10000.0
        assert accounts["Receita de Vendas"].credit == 10000.0
        assert accounts["Despesas Administrativas"].final_balance == -4000.0
        assert accounts["Despesas Administrativas"].debit == 4000.0
        assert result.summary.result_value == 6000.0

    def test_deduction_lines_not_inversions(self):
        result = run_engine(INCOME_STATEMENT, "DRE")

        assert result.summary.inversion_count == 0

    def test_negative_revenue_flagged(self):
        result = run_engine(["Receita de Vendas (10.000,00)"], "DRE")

        assert result.accounts[0].possible_inversion is True

    def test_categories(self):
        result = run_engine(INCOME_STATEMENT, "DRE")
        accounts = _by_name(result)

        assert accounts["Receita de Vendas"].category == CashFlowCategory.OPERATIONAL
        assert accounts["Despesas Financeiras"].category == CashFlowCategory.FINANCING

        totals = result.category_totals()
        assert totals[CashFlowCategory.FINANCING] == 500.0
        assert totals[CashFlowCategory.OPERATIONAL] == 15000.0
        assert totals[CashFlowCategory.INVESTMENT] == 0.0

    def test_no_categories_outside_income_statement(self):
        result = run_engine(TRIAL_BALANCE)

        assert all(a.category is None for a in result.accounts)
        assert all(v == 0.0 for v in result.category_totals().values())

    def test_document_type_detected(self):
        assert run_engine(INCOME_STATEMENT).summary.document_type == DocumentType.INCOME_STATEMENT

    def test_unknown_hint_falls_back_to_detection(self):
        assert run_engine(INCOME_STATEMENT, "invoice").summary.document_type == DocumentType.INCOME_STATEMENT


# =============================================================================
# Failure Tests
# =============================================================================

class TestFailures:

    def test_all_noise_raises(self):
        with pytest.raises(NoAccountsIdentifiedError) as exc_info:
            run_engine(["-------------", "Página 1", "abc"], "Balancete")

        assert exc_info.value.error_code == "LL-201"
        assert exc_info.value.details == {"line_count": 3, "skipped_lines": 3}

    def test_empty_document_raises(self):
        with pytest.raises(NoAccountsIdentifiedError):
            run_engine([], "Balancete")

    def test_malformed_lines_skipped(self):
        result = run_engine([
            "ATIVO CIRCULANTE",
            "1.01 | Caixa | 100,00",
            "|||||",
            "2.01 | Fornecedores | 100,00",
        ], "Balancete")

        assert len(result.accounts) == 2
        assert result.skipped_lines == 2


# =============================================================================
# Output Tests
# =============================================================================

class TestOutput:

    def test_deterministic(self):
        first = run_engine(TRIAL_BALANCE).to_dict()
        second = run_engine(TRIAL_BALANCE).to_dict()

        first.pop("run_id")
        second.pop("run_id")
        assert first == second

    def test_json_round_trip(self):
        result = run_engine(INCOME_STATEMENT, "DRE", spell_check=[
            {"original_term": "Adminstrativas", "suggested_correction": "Administrativas", "confidence": "High"},
        ])
        payload = json.loads(json.dumps(result.to_dict(), ensure_ascii=False))

        restored = NormalizationResult.from_dict(payload)

        assert restored.to_dict() == result.to_dict()
        assert restored.summary.document_type == DocumentType.INCOME_STATEMENT
        assert restored.accounts[0].nature == result.accounts[0].nature

    def test_summary_observations_frozen(self):
        result = run_engine(["1.01 | Caixa | (500,00)"], "Balancete")
        summary = result.summary

        assert isinstance(summary.observations, tuple)
        assert isinstance(summary.to_dict()["observations"], list)
        with pytest.raises(AttributeError):
            summary.observations.append("Outra")

        restored = NormalizationResult.from_dict(json.loads(json.dumps(result.to_dict())))
        assert restored.summary.observations == summary.observations

    def test_account_key(self):
        result = run_engine(TRIAL_BALANCE)

        assert _by_code(result)["1.01"].key == "1.01"
        assert run_engine(["Receita de Vendas 10,00"], "DRE").accounts[0].key == "Receita de Vendas"

    def test_spell_check_filtered(self):
        entries = filter_spell_check([
            {"original_term": "Caxia", "suggested_correction": "Caixa", "confidence": "High"},
            {"originalTerm": "Caixa", "suggestedCorrection": "caixa"},
            {"original_term": "", "suggested_correction": "Bancos"},
            {"originalTerm": "Fornecedroes", "suggestedCorrection": "Fornecedores", "confidence": "bogus"},
        ])

        assert [e.suggested_correction for e in entries] == ["Caixa", "Fornecedores"]
        assert entries[1].confidence.value == "Medium"
