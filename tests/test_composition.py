import pytest
import torch

from torch_fastdiag.core.solvers import (
    CompositionOfPreconditioners,
    ContractViolation,
    GaussSeidelOp,
    MatrixOp,
    PreconditionerFromOp,
    PreconditionerOp,
)


def _randn(*shape, seed=0):
    g = torch.Generator().manual_seed(seed)
    return torch.randn(*shape, generator=g, dtype=torch.float64)


def _spd(n, seed=0):
    B = _randn(n, n, seed=seed)
    return B @ B.T + n * torch.eye(n, dtype=torch.float64)


class ExactSolveOp(PreconditionerOp):
    """Sets x to A^{-1} f in one step."""

    def __init__(self, A):
        self._A = MatrixOp(A)
        self._inv = torch.linalg.inv(A)

    def step(self, f, x):
        x.copy_(self._inv @ f)

    def underlying_op(self):
        return self._A


class RecordingOp(PreconditionerOp):
    """Appends its name to a shared log on every sweep."""

    def __init__(self, name, log, n=3):
        self.name = name
        self.log = log
        self._A = MatrixOp(torch.eye(n, dtype=torch.float64))

    def step(self, f, x):
        self.log.append(("step", self.name))

    def step_t(self, f, x):
        self.log.append(("step_t", self.name))

    def underlying_op(self):
        return self._A


def test_composition_of_exact_solvers_solves_in_one_pass() -> None:
    A = _spd(5)
    f = _randn(5, seed=1)
    composition = CompositionOfPreconditioners(
        ExactSolveOp(A), ExactSolveOp(A), ExactSolveOp(A)
    )

    x = _randn(5, seed=2)
    composition.step(f, x)
    assert torch.allclose(x, torch.linalg.solve(A, f))


def test_sizes_delegate_to_first_member() -> None:
    A = _spd(4)
    first = ExactSolveOp(A)
    composition = CompositionOfPreconditioners.from_operators([first, ExactSolveOp(A)])

    assert composition.size == 2
    assert composition.rows() == first.rows() == 4
    assert composition.cols() == first.cols() == 4
    assert composition.underlying_op() is first.underlying_op()


def test_empty_composition_violates_contract_every_time() -> None:
    composition = CompositionOfPreconditioners()
    assert composition.size == 0

    for _ in range(3):
        with pytest.raises(ContractViolation):
            composition.rows()
        with pytest.raises(ContractViolation):
            composition.cols()
        with pytest.raises(ContractViolation):
            composition.underlying_op()


def test_step_order_is_forward_and_step_t_order_is_reversed() -> None:
    log = []
    composition = CompositionOfPreconditioners(
        RecordingOp("a", log), RecordingOp("b", log), RecordingOp("c", log)
    )
    f = torch.zeros(3, dtype=torch.float64)
    x = torch.zeros(3, dtype=torch.float64)

    composition.step(f, x)
    assert log == [("step", "a"), ("step", "b"), ("step", "c")]

    log.clear()
    composition.step_t(f, x)
    assert log == [("step_t", "c"), ("step_t", "b"), ("step_t", "a")]


def test_add_operator_appends_at_the_end() -> None:
    log = []
    composition = CompositionOfPreconditioners(RecordingOp("a", log), RecordingOp("b", log))
    assert len(composition) == 2

    composition.add_operator(RecordingOp("c", log))
    assert len(composition) == 3
    assert composition.operators[-1].name == "c"

    f = torch.zeros(3, dtype=torch.float64)
    x = torch.zeros(3, dtype=torch.float64)
    composition.step(f, x)
    composition.step_t(f, x)
    assert log[2] == ("step", "c")
    assert log[3] == ("step_t", "c")


def test_add_operator_rejects_non_preconditioners() -> None:
    composition = CompositionOfPreconditioners()
    with pytest.raises(TypeError):
        composition.add_operator(MatrixOp(torch.eye(2, dtype=torch.float64)))


def test_member_can_be_shared_between_compositions() -> None:
    A = _spd(4)
    shared = ExactSolveOp(A)
    first = CompositionOfPreconditioners(shared)
    second = CompositionOfPreconditioners(ExactSolveOp(A), shared)
    assert first.operators[0] is second.operators[1]


def test_transposed_step_matches_matrix_product() -> None:
    n = 6
    A = _spd(n, seed=0)
    P1 = _randn(n, n, seed=1) * 0.05
    P2 = _randn(n, n, seed=2) * 0.05
    A_op = MatrixOp(A, symmetric=True)
    p1 = PreconditionerFromOp(A_op, MatrixOp(P1))
    p2 = PreconditionerFromOp(A_op, MatrixOp(P2))
    composition = CompositionOfPreconditioners(p1, p2)

    f = _randn(n, seed=3)
    x0 = _randn(n, seed=4)

    # step_t = P1.step_t ∘ P2.step_t
    x = x0.clone()
    composition.step_t(f, x)
    x1 = x0 + P2.T @ (f - A @ x0)
    x2 = x1 + P1.T @ (f - A @ x1)
    assert torch.allclose(x, x2)

    # step = P2.step ∘ P1.step
    x = x0.clone()
    composition.step(f, x)
    x1 = x0 + P1 @ (f - A @ x0)
    x2 = x1 + P2 @ (f - A @ x1)
    assert torch.allclose(x, x2)

    # Iteration matrix (I - P2 A)(I - P1 A), preconditioner (I - E) A^{-1}
    eye = torch.eye(n, dtype=torch.float64)
    E = (eye - P2 @ A) @ (eye - P1 @ A)
    B = (eye - E) @ torch.linalg.inv(A)
    assert torch.allclose(composition.to_matrix(), B)

    # For symmetric A the transposed sweep realizes B^T
    B_t = composition.apply_transposed(eye)
    assert torch.allclose(B_t, B.T)


def test_gauss_seidel_pair_is_transposed_by_step_t() -> None:
    A = _spd(5, seed=7)
    composition = CompositionOfPreconditioners(GaussSeidelOp(A), GaussSeidelOp(A))
    eye = torch.eye(5, dtype=torch.float64)

    B = composition.apply(eye)
    B_t = composition.apply_transposed(eye)
    assert torch.allclose(B_t, B.T)


def test_apply_starts_from_zero_and_repeats_sweeps() -> None:
    A = _spd(4, seed=3)
    P = torch.diag(1.0 / torch.diagonal(A))
    smoother = PreconditionerFromOp(MatrixOp(A), MatrixOp(P), tau=0.5)
    composition = CompositionOfPreconditioners(smoother, smoother)
    f = _randn(4, seed=5)

    expected = torch.zeros(4, dtype=torch.float64)
    composition.step(f, expected)
    assert torch.allclose(composition.apply(f), expected)

    composition.num_of_sweeps = 2
    composition.step(f, expected)
    assert torch.allclose(composition.apply(f), expected)
