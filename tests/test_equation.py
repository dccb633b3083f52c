import math

import pytest
import sympy

from Equations.equation import Equation, compute_derivative, compute_evaluation, parse, resolve_symbol
from Equations.errors import BuildError, DifferentiationError, EquationError, EvaluationError, ReduceError
from Equations.tokens import TokenType

XI, MI, DI = sympy.symbols("xi mi di")
SYMPY_LOCALS = {"xi": XI, "mi": MI, "di": DI, "exp": sympy.exp}
POINTS = [
    {XI: 0.3, MI: -0.7, DI: 1.3},
    {XI: 1.1, MI: 0.4, DI: -0.9},
]


def to_sympy(text):
    return sympy.sympify(text.replace("^", "**"), locals=SYMPY_LOCALS)


def assert_equivalent(text, expected):
    actual = to_sympy(text)
    for point in POINTS:
        difference = (actual - expected).subs(point).evalf()
        assert abs(difference) < 1e-9, f"{text} != {expected} at {point}"


def derivative_text(expression, variable, depth=0):
    derivative = parse(expression).derivative(variable, depth)
    return derivative.to_string() if derivative is not None else None


class TestDerivatives:
    def test_constant(self):
        for variable in ("xi", "mi", "di"):
            assert parse("1").derivative(variable) is None

    def test_linear(self):
        assert derivative_text("2*xi", "xi") == "2"

    def test_square(self):
        assert derivative_text("xi^2", "xi") == "2*xi"

    def test_scaled_square(self):
        assert derivative_text("2*xi^2", "xi") == "2*2*xi"

    def test_exp_of_identity(self):
        assert derivative_text("exp(xi)", "xi") == "exp(xi)"

    def test_negated_binomial_is_expanded(self):
        text = derivative_text("-(xi-mi)^2", "xi")

        assert text == "-(2*xi-2*mi)"
        assert_equivalent(text, -2 * (XI - MI))

    def test_binomial_sum(self):
        assert derivative_text("(xi+mi)^2", "xi") == "2*xi+2*mi"

    def test_exponent_one(self):
        assert derivative_text("xi^1", "xi") == "1"

    def test_bracketed_constant_exponent(self):
        assert derivative_text("xi^(2)", "xi") == "2*xi"

    def test_quotient_rules(self):
        assert derivative_text("xi/mi", "xi") == "mi/mi^2"
        assert derivative_text("xi/mi", "mi") == "-xi/mi^2"

    def test_product_rule(self):
        assert derivative_text("xi*xi", "xi") == "xi+xi"

    def test_subtraction_of_target(self):
        assert derivative_text("xi-mi", "mi") == "-1"

    def test_chain_rule_through_exp(self):
        assert derivative_text("exp(xi^2)", "xi") == "exp(xi^2)*2*xi"
        assert derivative_text("exp(xi^3+xi^2+xi)", "xi") == "exp(xi^3+xi^2+xi)*(3*xi^2+2*xi+1)"

    def test_independent_subtree_is_zero(self):
        assert parse("exp(mi)*di").derivative("xi") is None

    def test_variable_exponent_fails(self):
        with pytest.raises(DifferentiationError):
            parse("xi^mi").derivative("xi")
        with pytest.raises(DifferentiationError):
            parse("mi^xi").derivative("xi")

    @pytest.mark.parametrize("expression", [
        "2*xi^2",
        "xi+2*xi^2",
        "exp(xi^3+xi^2+xi)",
        "(-(xi-mi)^2)/(2*di^2)",
        "exp((-(xi-mi)^2)/(2*di^2))",
        "(xi+mi)^2*di",
        "xi/(mi+xi)",
        "(xi-mi)^3",
        "(xi-mi-di)^2",
        "xi^0.5",
        "1/(xi^2+mi)",
    ])
    @pytest.mark.parametrize("variable", ["xi", "mi", "di"])
    def test_matches_sympy(self, expression, variable):
        expected = sympy.diff(to_sympy(expression), SYMPY_LOCALS[variable])
        text = derivative_text(expression, variable)

        if text is None:
            assert expected == 0
        else:
            assert_equivalent(text, expected)


class TestEvaluate:
    @pytest.mark.parametrize("expression,parameter,expected", [
        ("2*xi^2", 3, 18.0),
        ("xi-mi", 5, 0.0),
        ("exp(xi)", 0, 1.0),
        ("1,5+xi", 1, 2.5),
        ("-xi^2", 3, 9.0),
        ("-(xi)^2", 3, -9.0),
        ("2^3^2", 0, 512.0),
        ("xi-mi-di", 1, -1.0),
        ("8/4/2", 0, 1.0),
        ("exp((-(xi-mi)^2)/(2*di^2))", 0.7, 1.0),
    ])
    def test_values(self, expression, parameter, expected):
        assert parse(expression).evaluate(parameter) == pytest.approx(expected)

    def test_division_by_zero(self):
        with pytest.raises(EvaluationError):
            parse("1/(xi-mi)").evaluate(2)

    def test_overflow(self):
        with pytest.raises(EvaluationError):
            parse("exp(xi)").evaluate(1e6)

    @pytest.mark.parametrize("expression", ["xi*xi", "xi+xi", "xi/0,5", "xi*xi-xi*xi"])
    def test_silent_float_overflow(self, expression):
        with pytest.raises(EvaluationError):
            parse(expression).evaluate(1e308)

    def test_unparsed_equation(self):
        with pytest.raises(EquationError):
            Equation().evaluate(1)


class TestRoundTrip:
    @pytest.mark.parametrize("expression", [
        "2*xi",
        "xi+mi+di",
        "xi-(mi-di)",
        "(xi+mi)*di",
        "-(xi-mi)^2",
        "exp((-(xi-mi)^2)/(2*di^2))",
        "xi^-2",
        "2*-xi",
        "xi^mi^di",
        "(xi^2)^3",
    ])
    def test_canonical_text_is_reproduced(self, expression):
        assert str(parse(expression)) == expression

    @pytest.mark.parametrize("expression", ["-xi^2", "xi + 2", "1,5*xi", "-(xi)^mi^di", "((xi))"])
    def test_rendering_is_a_fixed_point(self, expression):
        rendered = str(parse(expression))
        assert str(parse(rendered)) == rendered
        assert parse(rendered).evaluate(2.0) == pytest.approx(parse(expression).evaluate(2.0))


class TestPreviousIteration:
    def test_shift_moves_every_variable_back_once(self):
        previous = parse("xi*mi")
        assert previous.is_parametric_in("mi", 0)
        assert not previous.is_parametric_in("mi", 1)

        step = Equation(previous.root, shift=True)
        step.parse("phi(i-1)+mi")

        assert step.is_parametric_in("mi", 0)
        assert step.is_parametric_in("mi", 1)
        assert step.is_parametric_in("xi", 1)
        assert not step.is_parametric_in("xi", 0)
        assert not step.is_parametric_in("mi", 2)
        # the bound tree is a copy
        assert previous.is_parametric_in("mi", 0)
        assert not previous.is_parametric_in("mi", 1)

    def test_shifted_rendering_and_derivatives(self):
        previous = parse("xi*mi")
        step = Equation(previous.root, shift=True)
        step.parse("phi(i-1)+mi")

        assert str(step) == "x(i-1)*m(i-1)+mi"
        assert str(step.derivative("mi", 1)) == "x(i-1)"
        assert str(step.derivative("mi", 0)) == "1"
        assert step.derivative("di", 0) is None

    def test_unshifted_binding(self):
        previous = parse("xi*mi")
        step = Equation(previous.root)
        step.parse("phi(i-1)+mi")

        assert step.previous is previous.root
        assert str(step.derivative("mi")) == "xi+1"
        assert step.evaluate(2) == 6.0

    def test_placeholder_needs_previous(self):
        with pytest.raises(BuildError):
            parse("phi(i-1)+1")

    def test_shift_needs_previous(self):
        with pytest.raises(ValueError):
            Equation(shift=True)


class TestParseErrors:
    def test_empty_brackets(self):
        with pytest.raises(BuildError):
            parse("()")

    def test_malformed(self):
        with pytest.raises(ReduceError):
            parse("xi+*mi")

    def test_resolve_symbol(self):
        assert resolve_symbol("di") is TokenType.DI
        assert resolve_symbol(TokenType.MI) is TokenType.MI
        with pytest.raises(ValueError):
            resolve_symbol("zi")


class TestComputeHelpers:
    def test_compute_derivative(self):
        result = compute_derivative("xi^2", "xi")

        assert result["equation"] == "xi^2"
        assert result["derivative"] == "2*xi"
        assert result["is_zero"] is False
        assert result["execution_time_ms"] >= 0
        assert result["peak_memory_bytes"] >= 0

    def test_compute_derivative_zero(self):
        result = compute_derivative("1", "mi")

        assert result["derivative"] is None
        assert result["is_zero"] is True

    def test_compute_derivative_propagates_errors(self):
        with pytest.raises(DifferentiationError):
            compute_derivative("xi^mi", "xi")

    def test_compute_evaluation(self):
        result = compute_evaluation("exp(xi)", 1)

        assert result["equation"] == "exp(xi)"
        assert result["value"] == pytest.approx(math.e)
