import pytest
import torch

from torch_fastdiag.core.basis import BSplineBasis, TensorBSplineBasis
from torch_fastdiag.core.iga import (
    AssemblerOptions,
    BoundaryConditions,
    BoxSide,
    DirichletStrategy,
)
from torch_fastdiag.core.ops import sparse_matvec
from torch_fastdiag.core.preconditioners import (
    FastDiagonalizationOp,
    SinglePatchPreconditioners,
    generalized_eigh,
)
from torch_fastdiag.core.solvers import (
    CompositionOfPreconditioners,
    GaussSeidelOp,
    PreconditionerFromOp,
    cg_solve,
)

CONFIGS = [
    ([6], 2),
    ([4, 5], [2, 3]),
    ([3, 3, 2], 1),
]


def _all_sides(dim):
    sides = []
    for d in range(dim):
        sides += [BoxSide.first(d), BoxSide.last(d)]
    return sides


def _factory(num_elements, degree, strategy=DirichletStrategy.ELIMINATION):
    basis = TensorBSplineBasis.uniform(num_elements, degree)
    bc = BoundaryConditions.dirichlet_on(*_all_sides(basis.dim))
    return basis, SinglePatchPreconditioners(basis, bc, strategy)


def _randn(n, seed=0):
    g = torch.Generator().manual_seed(seed)
    return torch.randn(n, generator=g, dtype=torch.float64)


@pytest.mark.parametrize("num_elements, degree", CONFIGS)
def test_mass_operator_matches_mass_matrix(num_elements, degree) -> None:
    _, factory = _factory(num_elements, degree)
    M = factory.get_mass_matrix()
    op = factory.get_mass_matrix_op()

    assert op.shape == tuple(M.sparse_sizes())
    v = _randn(op.cols())
    assert torch.allclose(op.apply(v), sparse_matvec(M, v), atol=1e-12)


@pytest.mark.parametrize("num_elements, degree", CONFIGS)
@pytest.mark.parametrize("a", [0.0, 2.5])
def test_stiffness_operator_matches_stiffness_matrix(num_elements, degree, a) -> None:
    _, factory = _factory(num_elements, degree)
    K = factory.get_stiffness_matrix(a)
    op = factory.get_stiffness_matrix_op(a)

    v = _randn(op.cols(), seed=1)
    assert torch.allclose(op.apply(v), sparse_matvec(K, v), atol=1e-10)


@pytest.mark.parametrize("num_elements, degree", CONFIGS)
def test_mass_inverse_operator(num_elements, degree) -> None:
    _, factory = _factory(num_elements, degree)
    M_op = factory.get_mass_matrix_op()
    M_inv = factory.get_mass_matrix_inv_op()

    v = _randn(M_op.cols(), seed=2)
    assert torch.allclose(M_inv.apply(M_op.apply(v)), v, atol=1e-9)


@pytest.mark.parametrize("num_elements, degree", CONFIGS)
@pytest.mark.parametrize("a", [0.0, 1.0, 100.0])
def test_fast_diagonalization_inverts_stiffness(num_elements, degree, a) -> None:
    _, factory = _factory(num_elements, degree)
    K_op = factory.get_stiffness_matrix_op(a)
    fd = factory.get_fast_diagonalization_op(a)

    assert fd.shape == K_op.shape
    for seed in range(3):
        v = _randn(K_op.cols(), seed=seed)
        error = fd.apply(K_op.apply(v)) - v
        assert error.norm() / v.norm() < 1e-8


@pytest.mark.parametrize(
    "strategy", [DirichletStrategy.NITSCHE, DirichletStrategy.PENALTY]
)
def test_fast_diagonalization_with_weak_dirichlet(strategy) -> None:
    basis, factory = _factory([5, 4], 2, strategy)
    K_op = factory.get_stiffness_matrix_op()
    fd = factory.get_fast_diagonalization_op()

    # Weak conditions keep all basis functions
    assert K_op.cols() == basis.size()
    v = _randn(K_op.cols(), seed=4)
    assert (fd.apply(K_op.apply(v)) - v).norm() / v.norm() < 1e-8


def test_fast_diagonalization_is_symmetric_with_block_input() -> None:
    _, factory = _factory([3, 4], 2)
    fd = factory.get_fast_diagonalization_op(0.5)
    F = fd.to_matrix()
    assert torch.allclose(F, F.T, atol=1e-12)

    K = factory.get_stiffness_matrix(0.5).to_dense()
    assert torch.allclose(F @ K, torch.eye(K.shape[0], dtype=torch.float64), atol=1e-9)


def test_one_dimensional_scenario() -> None:
    basis = BSplineBasis.uniform(8, 2)
    bc = BoundaryConditions.dirichlet_on(BoxSide.WEST, BoxSide.EAST)
    factory = SinglePatchPreconditioners(basis, bc, DirichletStrategy.ELIMINATION)

    K = factory.get_stiffness_matrix_op(0.0).to_matrix()
    M = factory.get_mass_matrix_op().to_matrix()
    assert K.shape == (8, 8)

    assert torch.allclose(K, K.T, atol=1e-12)
    assert torch.allclose(M, M.T, atol=1e-12)
    assert bool((torch.linalg.eigvalsh(K) > 0).all())
    assert bool((torch.linalg.eigvalsh(M) > 0).all())


def test_pure_neumann_needs_reaction_term() -> None:
    basis = TensorBSplineBasis.uniform([4, 4], 2)
    factory = SinglePatchPreconditioners(basis, BoundaryConditions())

    with pytest.raises(ValueError):
        factory.get_fast_diagonalization_op(0.0)

    fd = factory.get_fast_diagonalization_op(1.0)
    K_op = factory.get_stiffness_matrix_op(1.0)
    v = _randn(K_op.cols(), seed=5)
    assert (fd.apply(K_op.apply(v)) - v).norm() / v.norm() < 1e-8


def test_non_tensor_basis_is_rejected() -> None:
    with pytest.raises(TypeError):
        SinglePatchPreconditioners(object(), BoundaryConditions())


def test_boundary_conditions_and_options_are_copied() -> None:
    basis = TensorBSplineBasis.uniform([4, 4], 1)
    bc = BoundaryConditions.dirichlet_on(BoxSide.WEST)
    options = AssemblerOptions(dirichlet_strategy=DirichletStrategy.ELIMINATION)
    factory = SinglePatchPreconditioners(basis, bc, options)

    bc.add_condition(BoxSide.EAST, "dirichlet")
    options.dirichlet_strategy = DirichletStrategy.PENALTY

    assert factory.options.dirichlet_strategy is DirichletStrategy.ELIMINATION
    assert factory.get_mass_matrix().sparse_sizes() == (20, 20)
    assert factory.basis is basis


def test_getters_return_independent_results() -> None:
    basis, factory = _factory([3, 3], 2)
    sizes_before = basis.size_cwise()

    first = factory.get_stiffness_matrix(1.0).to_dense()
    second = factory.get_stiffness_matrix(1.0).to_dense()
    assert torch.equal(first, second)
    assert factory.get_fast_diagonalization_op() is not factory.get_fast_diagonalization_op()
    assert basis.size_cwise() == sizes_before


def test_fast_diagonalization_preconditions_cg() -> None:
    _, factory = _factory([8, 8], 2)
    K = factory.get_stiffness_matrix()
    fd = factory.get_fast_diagonalization_op()
    b = _randn(fd.rows(), seed=6)

    x, info = cg_solve(K, b, preconditioner=fd, tol=1e-10, maxiter=10)
    assert info["converged"]
    assert info["iterations"] <= 3
    assert torch.allclose(sparse_matvec(K, x), b, atol=1e-9)


def test_smoother_composition_with_fast_diagonalization() -> None:
    _, factory = _factory([6, 6], 2, DirichletStrategy.ELIMINATION)
    K = factory.get_stiffness_matrix(1.0)
    K_op = factory.get_stiffness_matrix_op(1.0)
    fd = factory.get_fast_diagonalization_op(1.0)

    smoother = CompositionOfPreconditioners(
        GaussSeidelOp(K), PreconditionerFromOp(K_op, fd), GaussSeidelOp(K)
    )
    assert smoother.rows() == K_op.rows()

    f = _randn(K_op.rows(), seed=7)
    x = torch.zeros_like(f)
    smoother.step(f, x)
    assert (K_op.apply(x) - f).norm() / f.norm() < 1e-8


def _laplacian_1d_pair(n):
    K = 2.0 * torch.eye(n, dtype=torch.float64)
    K -= torch.diag(torch.ones(n - 1, dtype=torch.float64), 1)
    K -= torch.diag(torch.ones(n - 1, dtype=torch.float64), -1)
    M = (4.0 * torch.eye(n, dtype=torch.float64) - K) / 6.0
    return M, K


def test_generalized_eigenvectors_are_mass_orthonormal() -> None:
    factory = SinglePatchPreconditioners(
        BSplineBasis.uniform(6, 3),
        BoundaryConditions.dirichlet_on(BoxSide.WEST, BoxSide.EAST),
    )
    M = factory.get_mass_matrix()
    K = factory.get_stiffness_matrix()

    lam, U = generalized_eigh(K, M)
    eye = torch.eye(lam.numel(), dtype=torch.float64)
    assert torch.allclose(U.T @ M.to_dense() @ U, eye, atol=1e-10)
    assert torch.allclose(U.T @ K.to_dense() @ U, torch.diag(lam), atol=1e-8)
    assert bool((lam[1:] >= lam[:-1]).all())


def test_fast_diagonalization_exposes_factors() -> None:
    M, K = _laplacian_1d_pair(4)
    M2, K2 = _laplacian_1d_pair(3)
    fd = FastDiagonalizationOp([M, M2], [K, K2], a=0.5)

    assert fd.a == 0.5
    assert [lam.numel() for lam in fd.eigenvalues()] == [4, 3]
    U0 = fd.eigenvectors()[0]
    assert torch.allclose(U0.T @ M @ U0, torch.eye(4, dtype=torch.float64), atol=1e-12)

    A = torch.kron(M2, K) + torch.kron(K2, M) + 0.5 * torch.kron(M2, M)
    assert torch.allclose(fd.to_matrix() @ A, torch.eye(12, dtype=torch.float64), atol=1e-10)


def test_fast_diagonalization_rejects_indefinite_mass() -> None:
    M, K = _laplacian_1d_pair(4)
    indefinite = M.clone()
    indefinite[0, 0] = -1.0

    with pytest.raises(ValueError):
        generalized_eigh(K, indefinite)
    with pytest.raises(ValueError):
        FastDiagonalizationOp([indefinite], [K])


def test_fast_diagonalization_rejects_mismatched_inputs() -> None:
    M, K = _laplacian_1d_pair(4)
    with pytest.raises(ValueError):
        FastDiagonalizationOp([M, M], [K])
    with pytest.raises(ValueError):
        FastDiagonalizationOp([], [])
