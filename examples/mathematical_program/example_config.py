# Options passed to every solver through SolverOptions.SetCommonOption
# Set verbose to 1 for a termination report from each solve
solver_kwargs = {'verbose': 0, 'max_iter': 1000, 'tol': 1e-08}

# Initial guesses
# Circle-constrained saddle problem: a guess away from the origin lets the
# solver find a feasible descent direction
good_initial_guess = [-5., 0.]
callback_initial_guess = [4., 5.]
manual_solver_initial_guess = [1., 1.]

# Solver used to contrast a bad and a good initial guess
initial_guess_solver = 'SLSQP'

# Solver chosen by hand in manually_choosing_a_solver
manual_solver = 'TrustConstr'
