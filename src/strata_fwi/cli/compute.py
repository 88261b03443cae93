"""Command-line tool for FWI gradient computation and forward modeling.

The strata-fwi CLI reads a velocity model and shot gathers from HDF5, runs
the per-shot forward and adjoint passes with progress tracking, and writes
the gradient, illumination and objective to HDF5 files.

Commands:
    gradient: Compute gradients for one or more iterations
    model: Forward-model shot gathers for a velocity model
"""

from __future__ import annotations

import sys
import warnings
from pathlib import Path

import click
from rich.console import Console

from strata_fwi.core.acquisition import Acquisition, SamplingPattern
from strata_fwi.core.waveforms import RickerWavelet
from strata_fwi.inversion.driver import GradientDriver, InversionConfig, ShotData
from strata_fwi.io.hdf5 import (
    InversionResultWriter,
    ShotGatherReader,
    ShotGatherWriter,
    load_velocity_model,
)

from .progress import ShotProgress, format_bytes, format_time, print_inversion_info

console = Console()


def _report_warnings(caught) -> None:
    for w in caught:
        console.print(f"[yellow]Warning:[/yellow] {w.message}")


def _print_output(path: Path) -> None:
    if path.exists():
        console.print(f"  Output: {path} ({format_bytes(path.stat().st_size)})")
    else:
        console.print(f"  Output: {path}")


@click.group()
@click.version_option(version="0.1.0", prog_name="strata-fwi")
def main():
    """Acoustic full-waveform inversion gradient tools."""


@main.command()
@click.option(
    "--velocity",
    "velocity_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Velocity model HDF5 file",
)
@click.option(
    "--shots",
    "shots_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Observed shot-gather HDF5 file",
)
@click.option(
    "--gradient",
    "gradient_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("gradient.h5"),
    show_default=True,
    help="Gradient output file",
)
@click.option(
    "--illumination",
    "illumination_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("illumination.h5"),
    show_default=True,
    help="Illumination output file",
)
@click.option(
    "--objective",
    "objective_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("objective.h5"),
    show_default=True,
    help="Objective output file",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output with per-shot progress")
@click.option(
    "--precondition/--no-precondition",
    default=True,
    show_default=True,
    help="Divide the gradient by the square root of the illumination",
)
@click.option("--iterations", type=int, default=1, show_default=True, help="Number of iterations")
@click.option(
    "--order", type=int, default=2, show_default=True, help="Checkpoint strip thickness in cells"
)
@click.option("--rbell", type=int, default=2, show_default=True, help="Bell smoothing radius")
@click.option(
    "--smooth/--no-smooth", default=True, show_default=True, help="Apply bell smoothing"
)
@click.option(
    "--mute", type=int, default=0, show_default=True, help="Near-surface gradient rows to zero"
)
@click.option(
    "--workers", type=int, default=1, show_default=True, help="Shots processed concurrently"
)
@click.pass_context
def gradient(
    ctx: click.Context,
    velocity_path: Path,
    shots_path: Path,
    gradient_path: Path,
    illumination_path: Path,
    objective_path: Path,
    verbose: bool,
    precondition: bool,
    iterations: int,
    order: int,
    rbell: int,
    smooth: bool,
    mute: int,
    workers: int,
):
    """Compute FWI gradients from observed shot gathers.

    Every iteration forward-models each shot in the current velocity model,
    back-propagates the data residual, and appends the post-processed
    gradient, the illumination and the objective to the output files.

    Example:

    \b
        strata-fwi gradient --velocity vel.h5 --shots shots.h5 \\
            --iterations 3 --mute 5 --workers 4
    """
    ctx.exit(
        _run_gradient(
            velocity_path=velocity_path,
            shots_path=shots_path,
            gradient_path=gradient_path,
            illumination_path=illumination_path,
            objective_path=objective_path,
            verbose=verbose,
            precondition=precondition,
            iterations=iterations,
            order=order,
            rbell=rbell,
            smooth=smooth,
            mute=mute,
            workers=workers,
        )
    )


def _run_gradient(
    velocity_path: Path,
    shots_path: Path,
    gradient_path: Path,
    illumination_path: Path,
    objective_path: Path,
    verbose: bool,
    **options,
) -> int:
    try:
        console.print(f"\n[bold]FWI Gradient:[/bold] {shots_path.name}", style="blue")
        console.print("─" * 60)

        config = InversionConfig(verbose=verbose, **options)
        velocity, dz, dx = load_velocity_model(velocity_path)
        with ShotGatherReader(shots_path) as reader:
            shots = reader.load_shot_data()

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            driver = GradientDriver(velocity, dz, dx, shots, config)
            context = driver.context()
        _report_warnings(caught)

        outputs = {
            "gradient": gradient_path,
            "illumination": illumination_path,
            "objective": objective_path,
        }
        print_inversion_info(console, context, shots, config, outputs)

        writer = InversionResultWriter(
            gradient_path, illumination_path, objective_path, shape=velocity.shape
        )
        progress = ShotProgress(console, shots.ns * config.iterations, verbose=verbose)
        driver.callback = progress.update
        try:
            for result in driver.run():
                writer.write_iteration(result)
                progress.progress.console.print(
                    f"Iteration {result.iteration}: objective = {result.objective:.6e}"
                )
        except KeyboardInterrupt:
            progress.finish()
            writer.finalize(runtime=progress.elapsed, interrupted=True)
            console.print("\n[yellow]Interrupted by user[/yellow]")
            return 130
        except Exception as e:
            progress.finish()
            writer.finalize(runtime=progress.elapsed)
            console.print(f"\n[bold red]Error:[/bold red] {e}")
            if verbose:
                console.print_exception()
            return 1
        finally:
            progress.finish()

        runtime = progress.elapsed
        writer.finalize(runtime=runtime)

        console.print("─" * 60)
        console.print("✓ [bold green]Gradient computation complete![/bold green]")
        for path in outputs.values():
            _print_output(path)
        console.print(f"  Runtime: {format_time(runtime)}")
        history = ", ".join(f"{value:.4e}" for value in driver.objective_history)
        console.print(f"  Objective: {history}")
        return 0

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            console.print_exception()
        return 1


@main.command()
@click.option(
    "--velocity",
    "velocity_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Velocity model HDF5 file",
)
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("shots.h5"),
    show_default=True,
    help="Shot-gather output file",
)
@click.option("--nt", type=int, required=True, help="Number of time steps")
@click.option("--dt", type=float, required=True, help="Time step in seconds")
@click.option("--fm", type=float, default=10.0, show_default=True, help="Ricker dominant frequency (Hz)")
@click.option("--amp", type=float, default=1.0, show_default=True, help="Ricker amplitude")
@click.option("--nb", type=int, default=30, show_default=True, help="Absorbing border width")
@click.option("--ns", type=int, default=1, show_default=True, help="Number of shots")
@click.option("--sxbeg", type=int, default=0, show_default=True, help="First source x index")
@click.option("--szbeg", type=int, default=0, show_default=True, help="First source z index")
@click.option("--jsx", type=int, default=0, show_default=True, help="Source x increment")
@click.option("--jsz", type=int, default=0, show_default=True, help="Source z increment")
@click.option("--ng", type=int, required=True, help="Number of receivers")
@click.option("--gxbeg", type=int, default=0, show_default=True, help="First receiver x index")
@click.option("--gzbeg", type=int, default=0, show_default=True, help="First receiver z index")
@click.option("--jgx", type=int, default=1, show_default=True, help="Receiver x increment")
@click.option("--jgz", type=int, default=0, show_default=True, help="Receiver z increment")
@click.option("--csdgather", is_flag=True, help="Move the receiver spread with the source")
@click.option(
    "--workers", type=int, default=1, show_default=True, help="Shots processed concurrently"
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output with per-shot progress")
@click.pass_context
def model(
    ctx: click.Context,
    velocity_path: Path,
    output_path: Path,
    nt: int,
    dt: float,
    fm: float,
    amp: float,
    nb: int,
    ns: int,
    sxbeg: int,
    szbeg: int,
    jsx: int,
    jsz: int,
    ng: int,
    gxbeg: int,
    gzbeg: int,
    jgx: int,
    jgz: int,
    csdgather: bool,
    workers: int,
    verbose: bool,
):
    """Forward-model shot gathers for a velocity model.

    The output file carries the acquisition metadata needed to use it as
    observed data for the gradient command.

    Example:

    \b
        strata-fwi model --velocity true.h5 --nt 1000 --dt 1e-3 \\
            --ns 5 --sxbeg 10 --jsx 20 --ng 100 -o shots.h5
    """
    ctx.exit(
        _run_model(
            velocity_path=velocity_path,
            output_path=output_path,
            workers=workers,
            verbose=verbose,
            nt=nt,
            dt=dt,
            fm=fm,
            amp=amp,
            nb=nb,
            sources=dict(zbeg=szbeg, xbeg=sxbeg, jz=jsz, jx=jsx, count=ns),
            receivers=dict(zbeg=gzbeg, xbeg=gxbeg, jz=jgz, jx=jgx, count=ng),
            csdgather=csdgather,
        )
    )


def _run_model(
    velocity_path: Path,
    output_path: Path,
    workers: int,
    verbose: bool,
    nt: int,
    dt: float,
    fm: float,
    amp: float,
    nb: int,
    sources: dict,
    receivers: dict,
    csdgather: bool,
) -> int:
    try:
        console.print(f"\n[bold]FWI Modeling:[/bold] {velocity_path.name}", style="blue")
        console.print("─" * 60)

        shots = ShotData(
            nt=nt,
            dt=dt,
            acquisition=Acquisition(
                sources=SamplingPattern(**sources),
                receivers=SamplingPattern(**receivers),
                csdgather=csdgather,
            ),
            wavelet=RickerWavelet(frequency=fm, amplitude=amp),
            nb=nb,
        )
        velocity, dz, dx = load_velocity_model(velocity_path)
        config = InversionConfig(workers=workers, verbose=verbose)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            driver = GradientDriver(velocity, dz, dx, shots, config)
            context = driver.context()
        _report_warnings(caught)

        print_inversion_info(console, context, shots, outputs={"output": output_path})

        progress = ShotProgress(console, shots.ns, description="Modeling", verbose=verbose)
        driver.callback = progress.update
        try:
            data = driver.model()
        finally:
            progress.finish()

        runtime = progress.elapsed
        with ShotGatherWriter(output_path, shots) as writer:
            writer.write_all(data)
            writer.finalize(runtime=runtime)

        console.print("─" * 60)
        console.print("✓ [bold green]Modeling complete![/bold green]")
        _print_output(output_path)
        console.print(f"  Runtime: {format_time(runtime)}")
        return 0

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
