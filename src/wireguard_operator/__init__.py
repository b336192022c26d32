"""
Wireguard Operator
Wireguard 게이트웨이와 피어 커스텀 리소스를 Kubernetes 오브젝트로 수렴시키는 오퍼레이터

Features:
- 게이트웨이용 Service / ConfigMap / Secret / Deployment 생성 및 갱신
- 피어별 키 쌍과 클라이언트 설정 Secret 관리
- idempotent 리컨실 (변경이 없으면 쓰기 없음)
- LoadBalancer / ClusterIP / 직접 지정 엔드포인트 지원
"""

__version__ = "1.0.0"
__author__ = "DevOps Team"
