import random
from sympy import symbols, S, exp, Add, Pow
from sympy.printing.str import StrPrinter


class EquationPrinter(StrPrinter):
    """Prints sympy expressions in the equation grammar ('^' for powers, no 'E')."""

    def _print_Exp1(self, expr):
        return "exp(1)"

    def _print_Pow(self, expr, rational=False):
        return super()._print_Pow(expr, rational).replace("**", "^")


def to_equation_string(expr):
    return EquationPrinter().doprint(expr)


def generate_random_expression(variables, num_terms=3, max_depth=2):

    # Ensure all variables are SymPy symbols
    variables = [symbols(v) if isinstance(v, str) else v for v in variables]

    operators = ["add", "mul", "pow"]

    def create_leaf():
        if random.random() < 0.7:
            return random.choice(variables)  # variable
        else:
            return S(random.randint(1, 10))  # constant

    # Exponents stay small positive integers: variable exponents cannot be differentiated
    def safe_exponent():
        return S(random.randint(1, 5))

    def create_node(current_depth):
        if current_depth >= max_depth or random.random() < 0.4:
            return create_leaf()

        choice = random.choice(operators + ["func"])

        # function node
        if choice == "func":
            return exp(create_node(current_depth + 1))

        # operator node
        left = create_node(current_depth + 1)
        right = create_node(current_depth + 1)

        if choice == "add":
            return left + right

        elif choice == "mul":
            return left * right

        elif choice == "pow":
            return Pow(left, safe_exponent())

    terms = [create_node(0) for _ in range(num_terms)]
    expr = Add(*terms)

    # Return the SymPy expression and its text in the equation grammar
    return expr, to_equation_string(expr)


if __name__ == '__main__':
    xi, mi = symbols('xi mi')
    expr, expr_str = generate_random_expression([xi, mi], num_terms=2, max_depth=3)
    print(f"Generated Expression: {expr}")
    print(f"Generated Expression String: {expr_str}")
