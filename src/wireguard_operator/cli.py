"""
CLI 메인 인터페이스
Click 및 Rich 기반 오퍼레이터 실행/점검 도구
"""

import sys
import click
import kopf
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import Config
from .errors import OperatorError
from .factory import CONFIG_FIELD
from .handlers import build_memo
from .keys import KeyManager, secret_value
from .logger import init_logger, get_logger
from .models import Gateway, Peer
from .reconciler import GatewayReconciler, PeerReconciler, converge, converge_all
from .store import ArtifactKind, ObjectStore

console = Console()


def _make_store(cfg: Config) -> ObjectStore:
    """설정에 맞는 Kubernetes 스토어 생성"""
    from .kube import KubernetesStore
    return KubernetesStore(kubeconfig=cfg.kube.kubeconfig, in_cluster=cfg.kube.in_cluster)


def _load(config_path, debug: bool) -> Config:
    cfg = Config(config_path)
    init_logger(cfg.logging.log_dir, cfg.logging.log_level, debug)
    return cfg


def _status_table(store: ObjectStore, namespace) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("종류", style="cyan")
    table.add_column("이름")
    table.add_column("공개키")
    table.add_column("엔드포인트 / 게이트웨이")

    for obj in store.list(ArtifactKind.GATEWAY, namespace):
        try:
            gateway = Gateway.from_dict(obj)
        except ValueError as e:
            table.add_row("Wireguard", obj["metadata"]["name"], f"[red]잘못된 스펙: {e}[/red]", "")
            continue
        table.add_row(
            "Wireguard",
            f"{gateway.namespace}/{gateway.name}",
            gateway.status.public_key or "[yellow]대기 중[/yellow]",
            gateway.status.endpoint or "[yellow]대기 중[/yellow]",
        )
    for obj in store.list(ArtifactKind.PEER, namespace):
        try:
            peer = Peer.from_dict(obj)
        except ValueError as e:
            table.add_row("WireguardPeer", obj["metadata"]["name"], f"[red]잘못된 스펙: {e}[/red]", "")
            continue
        table.add_row(
            "WireguardPeer",
            f"{peer.namespace}/{peer.name}",
            peer.status.public_key or "[yellow]대기 중[/yellow]",
            peer.spec.wireguard_ref,
        )
    return table


@click.group()
@click.version_option(version=__version__)
def cli():
    """Wireguard Operator

    Wireguard / WireguardPeer 리소스를 Service, ConfigMap, Secret, Deployment 로 수렴시킵니다.
    """
    pass


@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--debug', is_flag=True, help='디버그 모드')
def run(config, debug):
    """오퍼레이터 실행 (kopf, Ctrl+C 로 중지)"""
    cfg = _load(config, debug)
    logger = get_logger()
    namespace = cfg.operator.namespace
    logger.info(f"Starting operator (namespace={namespace or 'all'})")
    if logger.log_file:
        console.print(f"[cyan]로그 파일: {logger.log_file}[/cyan]")
        console.print(f"[cyan]에러 로그: {logger.error_file}[/cyan]")

    kopf.run(
        standalone=True,
        clusterwide=namespace is None,
        namespaces=[namespace] if namespace else [],
        memo=build_memo(_make_store(cfg), cfg),
    )


@cli.command()
@click.argument('kind', type=click.Choice(['wireguard', 'peer', 'all']))
@click.argument('name', required=False)
@click.option('--namespace', '-n', default='default', help='네임스페이스')
@click.option('--max-passes', type=int, default=20, help='최대 pass 수')
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
@click.option('--debug', is_flag=True, help='디버그 모드')
def reconcile(kind, name, namespace, max_passes, config, debug):
    """리소스 하나(또는 전체)를 수렴할 때까지 리컨실"""
    cfg = _load(config, debug)
    store = _make_store(cfg)

    if kind == 'all':
        keys = KeyManager(store)
        converged = converge_all(
            store,
            GatewayReconciler(store, keys, cfg.wireguard),
            PeerReconciler(store, keys, cfg.wireguard),
            namespace,
            max_passes,
        )
    else:
        if not name:
            console.print("[red]오류: 리소스 이름이 필요합니다.[/red]")
            sys.exit(2)
        reconciler_cls = GatewayReconciler if kind == 'wireguard' else PeerReconciler
        reconciler = reconciler_cls(store, settings=cfg.wireguard)
        try:
            passes = converge(reconciler, namespace, name, max_passes)
        except OperatorError as e:
            console.print(f"[red]✗ 리컨실 실패: {e}[/red]")
            sys.exit(1)
        converged = passes is not None
        if converged:
            console.print(f"[green]✓ {passes}번의 pass 후 수렴[/green]")

    if not converged:
        console.print(f"[yellow]{max_passes}번 안에 수렴하지 못했습니다. 의존 리소스를 확인하세요.[/yellow]")
    console.print(_status_table(store, namespace))
    sys.exit(0 if converged else 1)


@cli.command()
@click.option('--namespace', '-n', default=None, help='네임스페이스 (기본값: 전체)')
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
def status(namespace, config):
    """Wireguard / WireguardPeer 상태 표시"""
    cfg = _load(config, False)
    console.print(_status_table(_make_store(cfg), namespace))


@cli.command(name='peer-config')
@click.argument('name')
@click.option('--namespace', '-n', default='default', help='네임스페이스')
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
def peer_config(name, namespace, config):
    """피어 클라이언트 설정(wg0.conf) 출력"""
    cfg = _load(config, False)
    store = _make_store(cfg)
    try:
        secret = store.get(ArtifactKind.SECRET, namespace, name)
    except OperatorError as e:
        console.print(f"[red]✗ Secret 조회 실패: {e}[/red]")
        sys.exit(1)

    text = secret_value(secret, CONFIG_FIELD)
    if not text:
        console.print("[yellow]이 피어는 설정이 없습니다 (공개키만 관리되는 피어이거나 아직 수렴 전).[/yellow]")
        sys.exit(1)
    click.echo(text, nl=False)


@cli.command(name='init-config')
@click.argument('output', type=click.Path(), default='./config.yaml')
def init_config(output):
    """샘플 설정 파일 생성"""
    cfg = Config(use_defaults=False)
    cfg.create_sample(output)
    console.print(f"[green]✓ 샘플 설정 파일 생성: {output}[/green]")
    console.print("[cyan]설정 파일을 편집한 후 다음 명령어로 실행하세요:[/cyan]")
    console.print(f"[cyan]  wireguard-operator run --config {output}[/cyan]")


@cli.command()
@click.option('--config', '-c', type=click.Path(exists=True), help='설정 파일 경로')
def validate(config):
    """설정 파일 유효성 검사"""
    try:
        cfg = Config(config)
    except Exception as e:
        console.print(f"[red]✗ 설정 파일 오류: {str(e)}[/red]")
        sys.exit(1)

    console.print("[green]✓ 설정 파일이 유효합니다.[/green]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("항목", style="cyan")
    table.add_column("값")

    table.add_row("네임스페이스", cfg.operator.namespace or "전체")
    table.add_row("변경 후 재실행 지연", f"{cfg.operator.requeue_delay}초")
    table.add_row("최대 백오프", f"{cfg.operator.backoff_max}초")
    table.add_row("Wireguard 이미지", cfg.wireguard.image)
    table.add_row("Wireguard 포트", str(cfg.wireguard.port))
    table.add_row("kubeconfig", cfg.kube.kubeconfig or "기본값")
    table.add_row("로그 디렉토리", cfg.logging.log_dir or "[yellow]콘솔 전용[/yellow]")
    console.print(table)


def main():
    """메인 엔트리 포인트"""
    cli()


if __name__ == '__main__':
    main()
